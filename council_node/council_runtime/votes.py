# council_node/council_runtime/votes.py
from __future__ import annotations

"""
VoteLedger: cast votes, one per (proposal_id, voter), ever.

Votes are append-only: no overwrite, no delete. The duplicate check and the
append happen under the same lock, so two concurrent casts for one key can
never both succeed. Tallies are derived on read, never stored.
"""

import threading
from typing import Dict, Iterable, List, Set, Tuple

from .errors import (
    DuplicateVoteError,
    NotFoundError,
    ProposalClosedError,
    ValidationError,
    require_text,
)
from .models import (
    CHOICE_ABSTAIN,
    CHOICE_APPROVE,
    CHOICE_REJECT,
    VALID_CHOICES,
    Clock,
    Tally,
    Vote,
    to_iso,
    utc_now,
)
from .proposals import ProposalStore


class VoteLedger:
    def __init__(self, proposals: ProposalStore, clock: Clock = utc_now) -> None:
        self._proposals = proposals
        self._clock = clock
        self._lock = threading.RLock()
        self._votes: List[Vote] = []
        self._keys: Set[Tuple[str, str]] = set()

    def cast(self, proposal_id: str, voter: str, choice: str) -> Vote:
        voter = require_text(voter, "voter")
        option = (choice or "").strip().lower() if isinstance(choice, str) else ""
        if option not in VALID_CHOICES:
            raise ValidationError(f"choice must be one of {list(VALID_CHOICES)}")

        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                raise NotFoundError(f"Unknown proposal: {proposal_id}")
            if (proposal_id, voter) in self._keys:
                raise DuplicateVoteError(f"{voter} has already voted on proposal {proposal_id}")
            if not proposal.is_open:
                raise ProposalClosedError(f"Proposal {proposal_id} is {proposal.status}")

            vote = Vote(
                proposal_id=proposal_id,
                voter=voter,
                choice=option,
                timestamp=to_iso(self._clock()),
            )
            self._votes.append(vote)
            self._keys.add(vote.key)
            return vote

    # ----- reads -----

    def has_voted(self, proposal_id: str, voter: str) -> bool:
        """True exactly when ``cast`` for this pair would raise DuplicateVoteError."""
        voter = voter.strip() if isinstance(voter, str) else ""
        if not voter:
            return False
        with self._lock:
            return (proposal_id, voter) in self._keys

    def tally(self, proposal_id: str) -> Tally:
        counts: Dict[str, int] = {c: 0 for c in VALID_CHOICES}
        with self._lock:
            for v in self._votes:
                if v.proposal_id == proposal_id and v.choice in counts:
                    counts[v.choice] += 1
        return Tally(
            approve=counts[CHOICE_APPROVE],
            reject=counts[CHOICE_REJECT],
            abstain=counts[CHOICE_ABSTAIN],
        )

    def list_for(self, proposal_id: str, newest_first: bool = False) -> List[Vote]:
        with self._lock:
            out = [v for v in self._votes if v.proposal_id == proposal_id]
        return _by_timestamp(out, newest_first)

    def all(self, newest_first: bool = False) -> List[Vote]:
        with self._lock:
            out = list(self._votes)
        return _by_timestamp(out, newest_first)

    def __len__(self) -> int:
        with self._lock:
            return len(self._votes)

    # ----- rollback / persistence -----

    def checkpoint(self) -> int:
        with self._lock:
            return len(self._votes)

    def rollback(self, mark: int) -> None:
        with self._lock:
            self.restore(self._votes[:mark])

    def restore(self, votes: Iterable[Vote]) -> None:
        with self._lock:
            self._votes = []
            self._keys = set()
            for v in votes:
                # a persisted duplicate keeps the first vote only
                if v.key in self._keys:
                    continue
                self._votes.append(v)
                self._keys.add(v.key)


def _by_timestamp(votes: List[Vote], newest_first: bool) -> List[Vote]:
    ordered = sorted(votes, key=lambda v: v.timestamp)
    if newest_first:
        ordered.reverse()
    return ordered
