# council_node/council_runtime/proposals.py
from __future__ import annotations

"""
ProposalStore: the proposal collection and its lifecycle.

Proposals are kept in insertion order and never deleted. The only change a
stored proposal can undergo is an explicit status transition:

    pending -> active
    pending -> approved | rejected
    active  -> approved | rejected

approved and rejected are terminal. Nothing here decides *when* a proposal
moves; callers (an operator, a future finalisation job) request the move.
"""

import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import InvalidTransitionError, NotFoundError, ValidationError, require_text
from .models import (
    STATUS_ACTIVE,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    VALID_STATUSES,
    Clock,
    Proposal,
    Tally,
    parse_iso,
    to_iso,
    utc_now,
)

ORDER_OLDEST = "oldest"
ORDER_NEWEST = "newest"
ORDER_MOST_VOTES = "most_votes"

VALID_ORDERS = (ORDER_OLDEST, ORDER_NEWEST, ORDER_MOST_VOTES)

TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    STATUS_PENDING: (STATUS_ACTIVE, STATUS_APPROVED, STATUS_REJECTED),
    STATUS_ACTIVE: (STATUS_APPROVED, STATUS_REJECTED),
    STATUS_APPROVED: (),
    STATUS_REJECTED: (),
}


def _new_proposal_id() -> str:
    return uuid.uuid4().hex


class ProposalStore:
    def __init__(
        self,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_proposal_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self._items: List[Proposal] = []
        self._index: Dict[str, int] = {}

    # ----- commands -----

    def create(
        self,
        title: str,
        description: str,
        author: str,
        voting_ends_at: Optional[str] = None,
    ) -> Proposal:
        title = require_text(title, "title")
        description = require_text(description, "description")
        author = require_text(author, "author")

        ends: Optional[str] = None
        if voting_ends_at is not None and str(voting_ends_at).strip():
            try:
                ends = to_iso(parse_iso(str(voting_ends_at)))
            except ValueError as e:
                raise ValidationError(f"voting_ends_at is not an ISO-8601 timestamp: {voting_ends_at!r}") from e

        with self._lock:
            pid = self._id_factory()
            while pid in self._index:
                pid = self._id_factory()
            proposal = Proposal(
                id=pid,
                title=title,
                description=description,
                author=author,
                status=STATUS_PENDING,
                created_at=to_iso(self._clock()),
                voting_ends_at=ends,
            )
            self._index[pid] = len(self._items)
            self._items.append(proposal)
            return proposal

    def transition(self, proposal_id: str, new_status: str) -> Proposal:
        status = (new_status or "").strip().lower()
        if status not in VALID_STATUSES:
            raise ValidationError(f"status must be one of {list(VALID_STATUSES)}")

        with self._lock:
            idx = self._index.get(proposal_id)
            if idx is None:
                raise NotFoundError(f"Unknown proposal: {proposal_id}")
            current = self._items[idx]
            if status not in TRANSITIONS.get(current.status, ()):
                raise InvalidTransitionError(f"Cannot move proposal from {current.status} to {status}")
            updated = replace(current, status=status)
            self._items[idx] = updated
            return updated

    # ----- reads -----

    def get(self, proposal_id: str) -> Optional[Proposal]:
        with self._lock:
            idx = self._index.get(proposal_id)
            return self._items[idx] if idx is not None else None

    def exists(self, proposal_id: str) -> bool:
        with self._lock:
            return proposal_id in self._index

    def list(
        self,
        order: str = ORDER_OLDEST,
        tally: Optional[Callable[[str], Tally]] = None,
    ) -> Iterator[Proposal]:
        """
        Iterate proposals in the requested order.

        Each call takes its own snapshot, so the result can be restarted by
        calling again. "most_votes" needs ``tally`` (proposal id -> Tally);
        ties keep insertion order.
        """
        if order not in VALID_ORDERS:
            raise ValidationError(f"order must be one of {list(VALID_ORDERS)}")
        with self._lock:
            items = list(self._items)

        if order == ORDER_NEWEST:
            items.reverse()
        elif order == ORDER_MOST_VOTES:
            if tally is None:
                raise ValidationError("most_votes ordering needs a tally source")
            items.sort(key=lambda p: tally(p.id).total, reverse=True)
        return iter(items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Proposal]:
        return self.list()

    # ----- rollback / persistence -----

    def checkpoint(self) -> List[Proposal]:
        with self._lock:
            return list(self._items)

    def rollback(self, mark: List[Proposal]) -> None:
        self.restore(mark)

    def restore(self, proposals: Iterable[Proposal]) -> None:
        with self._lock:
            self._items = list(proposals)
            self._index = {p.id: i for i, p in enumerate(self._items)}
