"""Typed failures raised by the REST adapters.

Management endpoints answer errors as JSON objects shaped like::

    {"code": 404, "message": "...", "errorStack": [...], "restOperationId": 123}

Only ``message`` is reliable; proxies in front of a target may answer with
HTML or plain text instead, which is kept as a truncated snippet.
"""

from __future__ import annotations

from typing import Any, Optional

_SNIPPET_LIMIT = 400


class ApiError(RuntimeError):
    """Base class for REST adapter failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.payload = payload
        self.context = context

    @property
    def operation_id(self) -> Optional[str]:
        """``restOperationId`` of the failed call, when the endpoint sent one."""
        if isinstance(self.payload, dict) and self.payload.get("restOperationId") is not None:
            return str(self.payload["restOperationId"])
        return None


class ApiClientError(ApiError):
    """HTTP 4xx from a management endpoint."""


class ApiServerError(ApiError):
    """HTTP 5xx from a management endpoint."""


class ApiTimeoutError(ApiError):
    """Transport level timeout or connectivity failure."""

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        super().__init__(message, context=context)


def _snippet(resp: Any) -> str:
    return (getattr(resp, "text", "") or "")[:_SNIPPET_LIMIT]


def parse_error_payload(resp: Any) -> Any:
    """JSON body of an error response, else a text snippet, else None."""
    try:
        return resp.json()
    except Exception:
        return _snippet(resp) or None


def error_detail(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        return payload.strip() or None
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    stack = payload.get("errorStack")
    if isinstance(stack, list) and stack and isinstance(stack[0], str):
        return stack[0].strip() or None
    return None


def error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict) and payload.get("code") is not None:
        return str(payload["code"])
    return None


def raise_for_status(resp: Any, ctx: str) -> None:
    """Raise the adapter error matching a non-2xx ``resp``."""
    status = resp.status_code
    if 200 <= status < 300:
        return
    payload = parse_error_payload(resp)
    detail = error_detail(payload)
    message = f"{ctx}: {detail} (HTTP {status})" if detail else f"{ctx}: HTTP {status}"
    if 400 <= status < 500:
        error_cls = ApiClientError
    elif 500 <= status < 600:
        error_cls = ApiServerError
    else:
        error_cls = ApiError
    raise error_cls(
        message, status=status, code=error_code(payload), payload=payload, context=ctx
    )


def json_object(resp: Any, ctx: str) -> dict:
    """Parse response JSON and require an object payload."""
    try:
        payload = resp.json()
    except Exception as exc:
        raise ApiError(f"{ctx}: invalid JSON response: {_snippet(resp)}", context=ctx) from exc
    if not isinstance(payload, dict):
        raise ApiError(f"{ctx}: invalid JSON response shape: expected object", context=ctx)
    return dict(payload)


__all__ = [
    "ApiClientError",
    "ApiError",
    "ApiServerError",
    "ApiTimeoutError",
    "error_code",
    "error_detail",
    "json_object",
    "parse_error_payload",
    "raise_for_status",
]
