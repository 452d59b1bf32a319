"""Credential provider backed by the local management endpoint's token service."""

from __future__ import annotations

import logging
from typing import Optional

from fleetext.adapters.api_errors import ApiError, json_object, raise_for_status
from fleetext.adapters.http_client import HttpConfig, RetryingSession
from fleetext.domain.ports import CredentialPort
from fleetext.domain.targets import is_local_identifier

log = logging.getLogger(__name__)


class TokenRestAdapter(CredentialPort):
    """Issue upload tokens via ``POST /shared/token``.

    The token service answers ``{"queryParam": "<name>=<value>", ...}``; the
    ``queryParam`` string is what callers append to remote request URLs.
    """

    def __init__(self, base_url: str, cfg: HttpConfig, *, auth=None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = RetryingSession(cfg, auth=auth)

    def get_upload_token(self, target_host: str) -> Optional[str]:
        if is_local_identifier(target_host):
            return None
        url = f"{self.base_url}/shared/token"
        try:
            resp = self.session.post(url, json_body={"address": target_host})
            raise_for_status(resp, f"get_upload_token[{target_host}]")
            payload = json_object(resp, f"get_upload_token[{target_host}]")
        except ApiError as exc:
            log.error("Could not obtain upload token for %s: %s", target_host, exc)
            return None
        token = str(payload.get("queryParam") or "").strip()
        return token or None


__all__ = ["TokenRestAdapter"]
