"""Shared HTTP transport utilities for REST adapters.

This module provides a thin wrapper around ``requests.Session`` so adapter
implementations can share timeout policy, retry behavior, TLS verification
and credential handling.

Dependencies:
    - ``requests`` for network I/O.
    - ``fleetext.adapters.api_errors.ApiTimeoutError`` for typed transport failures.

Call context:
    - Constructed by the REST adapters in ``fleetext/adapters`` (device
      registry, token provider, stager, uploader, task driver).
    - Used only inside adapter layer methods; use cases interact through ports.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
import urllib3
from requests import exceptions as req_exc
from urllib3.exceptions import InsecureRequestWarning

from fleetext.adapters.api_errors import ApiTimeoutError


@dataclass
class HttpConfig:
    """Timeout, retry and TLS configuration for adapter HTTP calls.

    Attributes:
        request_timeout_s: Default timeout in seconds for JSON API calls.
        download_timeout_s: Default timeout in seconds for artifact downloads.
        upload_timeout_s: Default timeout in seconds for one upload chunk.
        retries: Number of retry attempts after the initial request.
        verify_tls: Whether to validate server certificates. Intra-fleet
            transfers run against self-signed management endpoints, so this
            defaults to ``False``.
    """
    request_timeout_s: float = 10
    download_timeout_s: float = 60
    upload_timeout_s: float = 60
    retries: int = 2
    verify_tls: bool = False


class RetryingSession:
    """Shared requests wrapper with credentials and retry loops.

    This class is intentionally transport-only. Callers provide endpoint URLs and
    decide how to map non-2xx responses into domain errors.
    """

    def __init__(self, cfg: HttpConfig, auth: Optional[Tuple[str, str]] = None) -> None:
        """Create a retry-enabled session.

        Args:
            cfg: Shared timeout, retry and TLS settings.
            auth: Optional basic-auth ``(user, password)`` pair sent on every call.

        Side Effects:
            Creates a persistent ``requests.Session`` object. With TLS
            verification off, silences urllib3's InsecureRequestWarning.
        """
        self.session = requests.Session()
        self.session.verify = cfg.verify_tls
        if not cfg.verify_tls:
            urllib3.disable_warnings(InsecureRequestWarning)
        if auth is not None:
            self.session.auth = auth
        self.cfg = cfg

    def _headers(
        self, accept: str = "application/json", json_body: bool = False
    ) -> Dict[str, str]:
        headers = {"Accept": accept}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _send(self, context: str, url: str, call) -> requests.Response:
        """Run ``call`` with retries on timeout/connectivity failures."""
        last_err: ApiTimeoutError | None = None
        attempts = self.cfg.retries + 1
        for _ in range(attempts):
            try:
                return call()
            except (req_exc.Timeout, req_exc.ConnectionError):
                last_err = ApiTimeoutError(f"Timeout contacting {url}", context=context)
        raise last_err

    def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        accept: str = "application/json",
        timeout: Optional[float] = None,
        stream: bool = False,
        allow_redirects: bool = True,
    ) -> requests.Response:
        """Send a GET request with retries on timeout/connectivity failures.

        Args:
            url: Absolute endpoint URL.
            params: Optional query parameter mapping.
            accept: ``Accept`` header value.
            timeout: Optional timeout override in seconds.
            stream: Whether to stream the response body.
            allow_redirects: Whether ``requests`` follows redirects itself.

        Returns:
            ``requests.Response`` from the first successful attempt.

        Raises:
            ApiTimeoutError: If all attempts fail with timeout/connection errors.
        """
        return self._send(
            f"GET {url}",
            url,
            lambda: self.session.get(
                url,
                params=params,
                headers=self._headers(accept=accept),
                timeout=timeout or self.cfg.request_timeout_s,
                stream=stream,
                allow_redirects=allow_redirects,
            ),
        )

    def post(
        self,
        url: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """Send a JSON POST request with retries on transport failures.

        Side Effects:
            Serializes ``json_body`` with ``json.dumps`` before sending.
        """
        data = None if json_body is None else json.dumps(json_body)
        return self._send(
            f"POST {url}",
            url,
            lambda: self.session.post(
                url,
                data=data,
                params=params,
                headers=self._headers(json_body=json_body is not None),
                timeout=timeout or self.cfg.request_timeout_s,
            ),
        )

    def post_bytes(
        self,
        url: str,
        *,
        data: bytes,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """Send a raw-body POST; ``data`` is an in-memory slice so retries resend it whole."""
        merged = self._headers()
        merged.update(headers)
        return self._send(
            f"POST {url}",
            url,
            lambda: self.session.post(
                url,
                data=data,
                params=params,
                headers=merged,
                timeout=timeout or self.cfg.upload_timeout_s,
            ),
        )

    def delete(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        return self._send(
            f"DELETE {url}",
            url,
            lambda: self.session.delete(
                url,
                params=params,
                headers=self._headers(),
                timeout=timeout or self.cfg.request_timeout_s,
            ),
        )


__all__ = ["HttpConfig", "RetryingSession"]
