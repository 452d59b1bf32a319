"""Domain-level error types for orchestration and front-end mapping.

Every error carries a stable ``code`` and the HTTP ``status`` the front-end
answers with, so use cases can raise them without knowing about transport.
"""

from __future__ import annotations

from typing import Any, Optional


class ExtensionError(Exception):
    """Base class for user-presentable orchestration errors."""

    code = "EXTENSION_ERROR"
    status = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status


class UntrustedTargetError(ExtensionError):
    code = "TARGET_UNTRUSTED"
    status = 400


class UnsupportedProtocolError(ExtensionError):
    code = "ARTIFACT_PROTOCOL_UNSUPPORTED"
    status = 400


class ArtifactNotFoundError(ExtensionError):
    code = "ARTIFACT_NOT_FOUND"
    status = 404


class DuplicateOperationError(ExtensionError):
    code = "OPERATION_IN_FLIGHT"
    status = 409


class AlreadyInstalledError(ExtensionError):
    code = "ALREADY_INSTALLED"
    status = 409


class NotInstalledError(ExtensionError):
    code = "NOT_INSTALLED"
    status = 404


class TaskSubmissionError(ExtensionError):
    code = "TASK_SUBMISSION_FAILED"
    status = 502


class TaskFailedError(ExtensionError):
    """Remote task reported ``FAILED``; ``body`` is the last status payload."""

    code = "TASK_FAILED"
    status = 500

    def __init__(self, message: str, *, body: Any = None) -> None:
        super().__init__(message)
        self.body = body


class TaskTimeoutError(ExtensionError):
    code = "TASK_TIMEOUT"
    status = 504

    def __init__(self, message: str, *, polls: int = 0, body: Any = None) -> None:
        super().__init__(message)
        self.polls = polls
        self.body = body


class UploadError(ExtensionError):
    """One upload chunk was rejected (or could not be sent)."""

    code = "UPLOAD_FAILED"
    status = 502

    def __init__(
        self,
        message: str,
        *,
        chunk_start: int,
        chunk_end: int,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.chunk_start = chunk_start
        self.chunk_end = chunk_end
        self.http_status = http_status


__all__ = [
    "AlreadyInstalledError",
    "ArtifactNotFoundError",
    "DuplicateOperationError",
    "ExtensionError",
    "NotInstalledError",
    "TaskFailedError",
    "TaskSubmissionError",
    "TaskTimeoutError",
    "UnsupportedProtocolError",
    "UntrustedTargetError",
    "UploadError",
]
