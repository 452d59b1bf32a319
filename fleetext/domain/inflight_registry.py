"""Process-wide registry of in-flight installation records.

The registry maps ``<host>:<port>:<artifact>`` keys to exactly one
:class:`InstallationRecord`. It is the only place records are mutated, and
every check-then-act sequence (claim, advance, fail, release, cancel) runs as
one critical section under a single lock.

A successful :meth:`InFlightRegistry.claim` hands back a :class:`Claim`. The
claim doubles as the cancellation token of the flow that owns the record:
removing the key (``cancel``) or claiming it again after removal makes the old
claim stale, and every later commit through a stale claim is refused.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fleetext.domain.errors import DuplicateOperationError
from fleetext.domain.installation import InstallationRecord, InstallState
from fleetext.domain.targets import Target


def make_key(target: Target, artifact_file: str) -> str:
    return f"{target.key}:{artifact_file}"


@dataclass(eq=False)
class Claim:
    """Ownership handle for one registry key."""

    key: str
    registry: "InFlightRegistry" = field(repr=False)

    @property
    def cancelled(self) -> bool:
        return not self.registry.holds(self)


class InFlightRegistry:
    """Lock-guarded store of at most one record per key."""

    def __init__(self) -> None:
        self._log = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[InstallationRecord, Claim]] = {}

    def claim(self, key: str, record: InstallationRecord) -> Claim:
        """Register ``record`` under ``key`` or raise if the key is taken."""
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                current = existing[0]
                raise DuplicateOperationError(
                    f"package with rpmFile {current.artifact_file} is already installing "
                    f"with state {current.state.value} on target {key.rsplit(':', 1)[0]}"
                )
            claim = Claim(key=key, registry=self)
            self._entries[key] = (record, claim)
        self._log.debug("Claimed %s", key)
        return claim

    def holds(self, claim: Claim) -> bool:
        with self._lock:
            entry = self._entries.get(claim.key)
            return entry is not None and entry[1] is claim

    def advance(self, claim: Claim, state: InstallState) -> bool:
        """Commit ``state`` for the claimed record; False when cancelled."""
        with self._lock:
            entry = self._entries.get(claim.key)
            if entry is None or entry[1] is not claim:
                self._log.info("Skipping %s for cancelled %s", state.value, claim.key)
                return False
            entry[0].transition(state)
        self._log.info("%s -> %s", claim.key, state.value)
        return True

    def fail(self, claim: Claim, message: str) -> bool:
        """Mark the claimed record ERROR and tag it; False when cancelled."""
        with self._lock:
            entry = self._entries.get(claim.key)
            if entry is None or entry[1] is not claim:
                return False
            record = entry[0]
            if record.state.is_terminal:
                return False
            record.fail(message)
        self._log.warning("%s failed: %s", claim.key, message)
        return True

    def tag(self, claim: Claim, text: str) -> bool:
        with self._lock:
            entry = self._entries.get(claim.key)
            if entry is None or entry[1] is not claim:
                return False
            entry[0].tags.append(text)
            return True

    def release(self, claim: Claim) -> bool:
        """Drop the record owned by ``claim`` (successful completion)."""
        with self._lock:
            entry = self._entries.get(claim.key)
            if entry is None or entry[1] is not claim:
                return False
            del self._entries[claim.key]
        self._log.debug("Released %s", claim.key)
        return True

    def cancel(self, key: str) -> bool:
        """Remove ``key`` whoever owns it. Returns whether a record existed."""
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            self._log.info("Cancelled %s in state %s", key, removed[0].state.value)
        return removed is not None

    def snapshot(self, key: str) -> Optional[InstallationRecord]:
        with self._lock:
            entry = self._entries.get(key)
            return entry[0].snapshot() if entry is not None else None

    def claimed_snapshot(self, claim: Claim) -> Optional[InstallationRecord]:
        """Copy of the record ``claim`` still owns; None once cancelled."""
        with self._lock:
            entry = self._entries.get(claim.key)
            if entry is None or entry[1] is not claim:
                return None
            return entry[0].snapshot()

    def snapshots(self, prefix: str = "") -> List[InstallationRecord]:
        """Copies of all records whose key starts with ``prefix``."""
        with self._lock:
            return [
                record.snapshot()
                for key, (record, _claim) in sorted(self._entries.items())
                if key.startswith(prefix)
            ]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["Claim", "InFlightRegistry", "make_key"]
