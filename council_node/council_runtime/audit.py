# council_node/council_runtime/audit.py
"""
Audit trail: entry construction and the append-only log.

AuditRecorder only builds entries; it never stores them. Appending to the
AuditLog is the caller's job (the GovernanceService), so that an entry is
written exactly once per successful command and never for a failed one.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Callable, Iterable, List, Optional

from .errors import require_text
from .models import AuditEntry, Clock, to_iso, utc_now

ACTION_PROPOSAL_SUBMITTED = "proposal_submitted"
ACTION_VOTE_CAST = "vote_cast"
ACTION_PROPOSAL_STATUS_CHANGED = "proposal_status_changed"


def _new_entry_id() -> str:
    return str(uuid.uuid4())


class AuditRecorder:
    def __init__(
        self,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_entry_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory

    def record(self, action: str, actor: str, details: Any = None) -> AuditEntry:
        """
        Build a new AuditEntry.

        ``action`` and ``actor`` are trimmed and must be non-empty, otherwise
        ValidationError is raised. A dict ``details`` is copied into a
        read-only mapping; anything else is kept as given.
        """
        action = require_text(action, "action")
        actor = require_text(actor, "actor")
        return AuditEntry(
            id=self._id_factory(),
            timestamp=to_iso(self._clock()),
            action=action,
            actor=actor,
            details=details,
        )


class AuditLog:
    """Append-only sequence of AuditEntry in creation order."""

    def __init__(self, entries: Optional[Iterable[AuditEntry]] = None) -> None:
        self._lock = threading.RLock()
        self._entries: List[AuditEntry] = list(entries or [])

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self, newest_first: bool = False, limit: Optional[int] = None) -> List[AuditEntry]:
        with self._lock:
            out = list(reversed(self._entries)) if newest_first else list(self._entries)
        if limit is not None:
            out = out[: max(0, int(limit))]
        return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ----- rollback / persistence -----

    def checkpoint(self) -> int:
        with self._lock:
            return len(self._entries)

    def rollback(self, mark: int) -> None:
        with self._lock:
            del self._entries[mark:]

    def restore(self, entries: Iterable[AuditEntry]) -> None:
        with self._lock:
            self._entries = list(entries)
