"""Translate adapter and unexpected errors into ExtensionError instances."""

from __future__ import annotations

from typing import Optional

from fleetext.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    ApiTimeoutError,
)
from fleetext.domain.errors import ExtensionError


def map_api_error(
    exc: Exception,
    *,
    default_code: str,
    default_message: Optional[str] = None,
) -> ExtensionError:
    """Map adapter exceptions to stable ExtensionError codes and statuses.

    Args:
        exc: The exception raised by an adapter or use case.
        default_code: Code used when ``exc`` is not a known adapter error.
        default_message: Message used instead of ``str(exc)`` for unknown errors.

    Returns:
        ``exc`` itself when it is already an ``ExtensionError``, otherwise a new
        one carrying the closest HTTP status.
    """
    if isinstance(exc, ExtensionError):
        return exc
    if isinstance(exc, ApiTimeoutError):
        return ExtensionError(str(exc) or "Request timed out.", code="REQUEST_TIMEOUT", status=504)
    if isinstance(exc, ApiClientError):
        if exc.status in (401, 403):
            return ExtensionError(
                f"Target rejected credentials: {exc}", code="AUTH_FAILED", status=502
            )
        return ExtensionError(str(exc), code="REQUEST_FAILED", status=502)
    if isinstance(exc, ApiServerError):
        return ExtensionError(str(exc), code="TARGET_ERROR", status=502)
    if isinstance(exc, ApiError):
        return ExtensionError(str(exc), code="API_ERROR", status=502)

    message = default_message or str(exc) or "Unexpected error."
    return ExtensionError(message, code=default_code, status=500)


def describe(exc: BaseException) -> str:
    """Short text for record tags."""
    message = getattr(exc, "message", None) or str(exc)
    return message or exc.__class__.__name__


__all__ = ["describe", "map_api_error"]
