"""Engine configuration loaded from ``FLEETEXT_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from fleetext.adapters.http_client import HttpConfig
from fleetext.domain.installation import REMOTE_DOWNLOAD_DIR


def _env_truthy(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    return int(_env_float(env, name, default))


@dataclass
class EngineConfig:
    """Settings for the orchestration engine and its adapters.

    Attributes:
        staging_dir: Local scratch directory for downloaded artifacts, with one
            ``<host>_<port>`` subdirectory per target.
        management_port: Port of the local management endpoint.
        local_user: Basic-auth user for the local management endpoint.
        local_password: Basic-auth password for the local management endpoint.
        remote_download_dir: Directory on the target where uploads land; used
            as the ``packageFilePath`` prefix of INSTALL tasks.
        chunk_size: Upload chunk size in bytes.
        poll_interval_s: Delay between remote task status polls.
        task_timeout_s: Default upper bound for one remote task.
        device_group_prefix: Device groups owned by this system start with it.
        link_file_sources: Symlink ``file:`` artifacts into staging instead of copying.
        http: Transport timeouts, retries and TLS verification.
    """

    staging_dir: Path = Path("/tmp")
    management_port: int = 8100
    local_user: str = "admin"
    local_password: str = ""
    remote_download_dir: str = REMOTE_DOWNLOAD_DIR
    chunk_size: int = 512000
    poll_interval_s: float = 2.0
    task_timeout_s: float = 120.0
    device_group_prefix: str = "fleetext"
    link_file_sources: bool = True
    http: HttpConfig = field(default_factory=HttpConfig)

    @property
    def local_auth(self) -> Tuple[str, str]:
        return (self.local_user, self.local_password)

    @property
    def local_base_url(self) -> str:
        return f"http://localhost:{self.management_port}"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if env is None else env
        defaults = cls()
        http = HttpConfig(
            request_timeout_s=_env_float(env, "FLEETEXT_REQUEST_TIMEOUT_S", 10),
            download_timeout_s=_env_float(env, "FLEETEXT_DOWNLOAD_TIMEOUT_S", 60),
            upload_timeout_s=_env_float(env, "FLEETEXT_UPLOAD_TIMEOUT_S", 60),
            retries=_env_int(env, "FLEETEXT_HTTP_RETRIES", 2),
            verify_tls=_env_truthy(env.get("FLEETEXT_VERIFY_TLS"), False),
        )
        chunk_size = _env_int(env, "FLEETEXT_CHUNK_SIZE", defaults.chunk_size)
        if chunk_size <= 0:
            raise ValueError("FLEETEXT_CHUNK_SIZE must be positive")
        return cls(
            staging_dir=Path(env.get("FLEETEXT_STAGING_DIR") or defaults.staging_dir),
            management_port=_env_int(env, "FLEETEXT_MGMT_PORT", defaults.management_port),
            local_user=env.get("FLEETEXT_LOCAL_USER") or defaults.local_user,
            local_password=env.get("FLEETEXT_LOCAL_PASSWORD", defaults.local_password),
            remote_download_dir=env.get("FLEETEXT_REMOTE_DOWNLOAD_DIR")
            or defaults.remote_download_dir,
            chunk_size=chunk_size,
            poll_interval_s=_env_float(env, "FLEETEXT_POLL_INTERVAL_S", defaults.poll_interval_s),
            task_timeout_s=_env_float(env, "FLEETEXT_TASK_TIMEOUT_S", defaults.task_timeout_s),
            device_group_prefix=env.get("FLEETEXT_DEVICE_GROUP_PREFIX")
            or defaults.device_group_prefix,
            link_file_sources=_env_truthy(env.get("FLEETEXT_LINK_FILE_SOURCES"), True),
            http=http,
        )


__all__ = ["EngineConfig"]
