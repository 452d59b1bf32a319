"""Sequential byte-range upload of staged artifacts to a target.

Each chunk is a separate ``POST /mgmt/shared/file-transfer/uploads/<file>``
carrying ``Content-Range: <start>-<end>/<total>``. Chunks are sent strictly
one after another; the upload only counts as complete once the chunk that
ends at ``total - 1`` has been accepted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Tuple

from fleetext.adapters.artifact_stager import staged_path
from fleetext.adapters.target_access import TargetAccess
from fleetext.domain.errors import UploadError
from fleetext.domain.ports import UploaderPort
from fleetext.domain.targets import Target

UPLOADS_PATH = "/mgmt/shared/file-transfer/uploads"
DEFAULT_CHUNK_SIZE = 512000


def chunk_ranges(total: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """Yield inclusive ``(start, end)`` pairs partitioning ``[0, total - 1]``."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    start = 0
    while start < total:
        end = min(start + chunk_size - 1, total - 1)
        yield start, end
        start = end + 1


class ChunkedUploader(UploaderPort):
    def __init__(
        self,
        staging_dir: str | Path,
        access: TargetAccess,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.staging_dir = Path(staging_dir)
        self.access = access
        self.chunk_size = chunk_size
        self._log = logging.getLogger(__name__)

    def upload(self, target: Target, staged_filename: str) -> bool:
        path = staged_path(self.staging_dir, target, staged_filename)
        total = path.stat().st_size
        if total == 0:
            raise UploadError(
                f"rpmFile {staged_filename} is empty",
                chunk_start=0,
                chunk_end=-1,
            )

        session = self.access.session_for(target)
        # One token per upload; it is short-lived but outlives a sequential chunk run.
        token = self.access.token_for(target)
        if not target.is_local and not token:
            raise UploadError(
                f"no upload token for target {target.key}",
                chunk_start=0,
                chunk_end=min(self.chunk_size, total) - 1,
            )
        url = self.access.url_for(target, f"{UPLOADS_PATH}/{staged_filename}", token)

        with path.open("rb") as handle:
            for start, end in chunk_ranges(total, self.chunk_size):
                handle.seek(start)
                data = handle.read(end - start + 1)
                headers = {
                    "Content-Type": "application/octet-stream",
                    "Content-Range": f"{start}-{end}/{total}",
                    "Content-Length": str(len(data)),
                }
                self._log.info(
                    "uploading %s to %s %d-%d/%d", staged_filename, target.key, start, end, total
                )
                resp = session.post_bytes(url, data=data, headers=headers)
                if not 200 <= resp.status_code < 300:
                    raise UploadError(
                        f"upload part start: {start} end: {end} return status: {resp.status_code}",
                        chunk_start=start,
                        chunk_end=end,
                        http_status=resp.status_code,
                    )
        return True


__all__ = ["ChunkedUploader", "DEFAULT_CHUNK_SIZE", "UPLOADS_PATH", "chunk_ranges"]
