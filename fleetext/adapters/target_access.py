"""Per-target session and URL selection shared by uploader and task driver.

The local management endpoint is reached over plain HTTP with fixed basic
credentials. Remote targets are reached over HTTPS with a short-lived token
from the credential provider appended to the query string.
"""

from __future__ import annotations

from typing import Optional, Tuple

from fleetext.adapters.http_client import HttpConfig, RetryingSession
from fleetext.domain.ports import CredentialPort
from fleetext.domain.targets import Target


class TargetAccess:
    def __init__(
        self,
        cfg: HttpConfig,
        *,
        local_auth: Tuple[str, str],
        credentials: CredentialPort,
    ) -> None:
        self.cfg = cfg
        self.credentials = credentials
        self.local_session = RetryingSession(cfg, auth=local_auth)
        self.remote_session = RetryingSession(cfg)

    def session_for(self, target: Target) -> RetryingSession:
        return self.local_session if target.is_local else self.remote_session

    def token_for(self, target: Target) -> Optional[str]:
        if target.is_local:
            return None
        return self.credentials.get_upload_token(target.host)

    @staticmethod
    def url_for(target: Target, path: str, token: Optional[str] = None) -> str:
        url = f"{target.base_url}{path}"
        if token:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{token}"
        return url


__all__ = ["TargetAccess"]
