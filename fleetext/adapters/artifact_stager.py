"""Stage package artifacts from ``file:``/``http:``/``https:`` sources.

Protocol validation and missing local files are hard failures (raised).
Network failures are soft: the partial file is removed and ``stage`` returns
``None`` so the installation flow can record the failure on the record.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urljoin, urlparse

from requests import exceptions as req_exc

from fleetext.adapters.api_errors import ApiError
from fleetext.adapters.http_client import HttpConfig, RetryingSession
from fleetext.domain.errors import ArtifactNotFoundError, UnsupportedProtocolError
from fleetext.domain.installation import VALID_PROTOCOLS, artifact_name_from_url
from fleetext.domain.ports import StagerPort
from fleetext.domain.targets import Target

_STREAM_CHUNK = 64 * 1024


def staged_path(staging_dir: Path, target: Target, filename: str) -> Path:
    """``<staging_dir>/<host>_<port>/<filename>``; one directory per target."""
    return Path(staging_dir) / target.staging_name / filename


class ArtifactStager(StagerPort):
    def __init__(
        self,
        staging_dir: str | Path,
        cfg: HttpConfig,
        *,
        link_file_sources: bool = True,
    ) -> None:
        self.staging_dir = Path(staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.cfg = cfg
        self.link_file_sources = link_file_sources
        self.session = RetryingSession(cfg)
        self._log = logging.getLogger(__name__)

    def staged_path(self, target: Target, filename: str) -> Path:
        return staged_path(self.staging_dir, target, filename)

    def stage(self, source_url: str, target: Target) -> Optional[str]:
        """Fetch ``source_url`` into the staging subdirectory of ``target``.

        Returns:
            The staged file name, or ``None`` when the download failed.

        Raises:
            UnsupportedProtocolError: Scheme is not file, http or https.
            ArtifactNotFoundError: A ``file:`` source does not exist.
        """
        parsed = urlparse(str(source_url or "").strip())
        if parsed.scheme not in VALID_PROTOCOLS:
            raise UnsupportedProtocolError(
                f"extension url must use the following protocols: {list(VALID_PROTOCOLS)}"
            )
        filename = artifact_name_from_url(source_url)
        if not filename:
            raise ArtifactNotFoundError(f"no artifact file name in url {source_url}")

        destination = self.staged_path(target, filename)
        destination.parent.mkdir(parents=True, exist_ok=True)

        if parsed.scheme == "file":
            self._stage_local(Path(unquote(parsed.path)), destination)
            return filename

        self._remove_existing(destination)
        self._log.info("Downloading %s to %s", source_url, destination)
        if self._download(source_url, destination):
            return filename
        return None

    def _remove_existing(self, destination: Path) -> None:
        if destination.is_symlink() or destination.exists():
            size = destination.lstat().st_size
            destination.unlink()
            self._log.info("file %s (%d bytes) was deleted", destination.name, size)

    def _stage_local(self, source: Path, destination: Path) -> None:
        if not source.is_file():
            raise ArtifactNotFoundError(f"file does not exist {source}")
        if destination.resolve() == source.resolve():
            # Destination is the source itself or a link to it.
            self._log.info("file %s is already staged", destination.name)
            return
        self._remove_existing(destination)
        if self.link_file_sources:
            os.symlink(source, destination)
        else:
            shutil.copy2(source, destination)

    def _download(self, source_url: str, destination: Path) -> bool:
        try:
            resp = self.session.get(
                source_url,
                accept="*/*",
                stream=True,
                allow_redirects=False,
                timeout=self.cfg.download_timeout_s,
            )
            location = resp.headers.get("Location")
            if 300 <= resp.status_code < 400 and location:
                resp.close()
                redirect_url = urljoin(source_url, location)
                self._log.info("following download redirect to: %s", redirect_url)
                resp = self.session.get(
                    redirect_url,
                    accept="*/*",
                    stream=True,
                    allow_redirects=False,
                    timeout=self.cfg.download_timeout_s,
                )
            if not 200 <= resp.status_code < 300:
                self._log.error(
                    "error downloading url %s - HTTP %s", source_url, resp.status_code
                )
                resp.close()
                return False
            with destination.open("wb") as handle:
                for block in resp.iter_content(chunk_size=_STREAM_CHUNK):
                    if block:
                        handle.write(block)
            resp.close()
        except (ApiError, req_exc.RequestException, OSError) as exc:
            self._log.error("error downloading url %s - %s", source_url, exc)
            destination.unlink(missing_ok=True)
            return False
        self._log.info("Staged %s (%d bytes)", destination.name, destination.stat().st_size)
        return True


__all__ = ["ArtifactStager", "VALID_PROTOCOLS", "staged_path"]
