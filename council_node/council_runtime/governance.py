# council_node/council_runtime/governance.py
from __future__ import annotations

"""
GovernanceService: the only mutation path into the council state.

Commands
--------
- submit_proposal(title, description, author, voting_ends_at=None)
- cast_vote(proposal_id, voter, choice)
- update_proposal_status(proposal_id, status, actor)

Each command runs under the service lock and is all-or-nothing:

    1. mutate ProposalStore / VoteLedger
    2. build the audit entry (AuditRecorder) and append it to the AuditLog
    3. save a snapshot (when a state store is attached)

If any step fails, the stores and the audit log are rolled back to where
they were before step 1 and the error propagates. A successful command adds
exactly one audit entry; a failed one adds none.

Everything else on the service is a read projection.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .atomic_store import AtomicStateStore
from .audit import (
    ACTION_PROPOSAL_STATUS_CHANGED,
    ACTION_PROPOSAL_SUBMITTED,
    ACTION_VOTE_CAST,
    AuditLog,
    AuditRecorder,
)
from .errors import CouncilError, NotFoundError, StorageError, require_text
from .models import AuditEntry, Clock, Proposal, Tally, Vote, utc_now
from .proposals import ORDER_NEWEST, ProposalStore
from .votes import VoteLedger

log = logging.getLogger(__name__)


class GovernanceService:
    def __init__(
        self,
        proposals: ProposalStore,
        votes: VoteLedger,
        recorder: AuditRecorder,
        audit: Optional[AuditLog] = None,
        state_store: Optional[AtomicStateStore] = None,
    ) -> None:
        self.proposals = proposals
        self.votes = votes
        self.recorder = recorder
        self.audit = audit if audit is not None else AuditLog()
        self.state_store = state_store
        self._lock = threading.RLock()

    @classmethod
    def build(
        cls,
        state_store: Optional[AtomicStateStore] = None,
        clock: Clock = utc_now,
    ) -> "GovernanceService":
        """
        Wire fresh stores that share one clock. When ``state_store`` holds a
        snapshot it is loaded before the service is returned.
        """
        proposals = ProposalStore(clock=clock)
        service = cls(
            proposals=proposals,
            votes=VoteLedger(proposals, clock=clock),
            recorder=AuditRecorder(clock=clock),
            audit=AuditLog(),
            state_store=state_store,
        )
        if state_store is not None:
            snapshot = state_store.load()
            if snapshot:
                service.restore(snapshot)
                log.info(
                    "Loaded council state from %s (%d proposals, %d votes, %d audit entries)",
                    state_store.path,
                    len(service.proposals),
                    len(service.votes),
                    len(service.audit),
                )
        return service

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit_proposal(
        self,
        title: str,
        description: str,
        author: str,
        voting_ends_at: Optional[str] = None,
    ) -> Proposal:
        with self._command("submit_proposal"):
            proposal = self.proposals.create(title, description, author, voting_ends_at=voting_ends_at)
            self._append_audit(
                ACTION_PROPOSAL_SUBMITTED,
                proposal.author,
                {"proposal_id": proposal.id, "title": proposal.title},
            )
        log.info("Proposal %s submitted by %s", proposal.id, proposal.author)
        return proposal

    def cast_vote(self, proposal_id: str, voter: str, choice: str) -> Vote:
        with self._command("cast_vote"):
            vote = self.votes.cast(proposal_id, voter, choice)
            self._append_audit(
                ACTION_VOTE_CAST,
                vote.voter,
                {"proposal_id": vote.proposal_id, "choice": vote.choice},
            )
        log.info("Vote %s on %s cast by %s", vote.choice, vote.proposal_id, vote.voter)
        return vote

    def update_proposal_status(self, proposal_id: str, status: str, actor: str) -> Proposal:
        with self._command("update_proposal_status"):
            before = self.proposals.get(proposal_id)
            if before is None:
                raise NotFoundError(f"Unknown proposal: {proposal_id}")
            actor = require_text(actor, "actor")
            updated = self.proposals.transition(proposal_id, status)
            self._append_audit(
                ACTION_PROPOSAL_STATUS_CHANGED,
                actor,
                {"proposal_id": proposal_id, "from": before.status, "to": updated.status},
            )
        log.info("Proposal %s moved %s -> %s by %s", proposal_id, before.status, updated.status, actor)
        return updated

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    @property
    def total_proposals(self) -> int:
        return len(self.proposals)

    @property
    def active_proposals(self) -> int:
        return sum(1 for p in self.proposals.list() if p.is_open)

    @property
    def total_votes(self) -> int:
        return len(self.votes)

    @property
    def total_audit_entries(self) -> int:
        return len(self.audit)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "total_proposals": self.total_proposals,
                "active_proposals": self.active_proposals,
                "total_votes": self.total_votes,
                "total_audit_entries": self.total_audit_entries,
            }

    def get_proposal(self, proposal_id: str) -> Proposal:
        proposal = self.proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Unknown proposal: {proposal_id}")
        return proposal

    def list_proposals(self, order: str = ORDER_NEWEST) -> Iterator[Proposal]:
        return self.proposals.list(order=order, tally=self.votes.tally)

    def proposals_needing_vote_from(self, actor: str) -> List[Proposal]:
        return [p for p in self.proposals.list() if p.is_open and not self.votes.has_voted(p.id, actor)]

    def tally(self, proposal_id: str) -> Tally:
        return self.votes.tally(proposal_id)

    def has_voted(self, proposal_id: str, voter: str) -> bool:
        return self.votes.has_voted(proposal_id, voter)

    def votes_for(self, proposal_id: str, newest_first: bool = False) -> List[Vote]:
        return self.votes.list_for(proposal_id, newest_first=newest_first)

    def all_votes(self, newest_first: bool = False) -> List[Vote]:
        return self.votes.all(newest_first=newest_first)

    def audit_log(self, newest_first: bool = True, limit: Optional[int] = None) -> List[AuditEntry]:
        return self.audit.entries(newest_first=newest_first, limit=limit)

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "proposals": [p.to_dict() for p in self.proposals.list()],
                "votes": [v.to_dict() for v in self.votes.all()],
                "audit": [e.to_dict() for e in self.audit.entries()],
            }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.proposals.restore(Proposal.from_dict(p) for p in snapshot.get("proposals") or [])
            self.votes.restore(Vote.from_dict(v) for v in snapshot.get("votes") or [])
            self.audit.restore(AuditEntry.from_dict(e) for e in snapshot.get("audit") or [])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append_audit(self, action: str, actor: str, details: Dict[str, Any]) -> AuditEntry:
        entry = self.recorder.record(action, actor, details)
        self.audit.append(entry)
        return entry

    @contextmanager
    def _command(self, name: str) -> Iterator[None]:
        with self._lock:
            marks = (self.proposals.checkpoint(), self.votes.checkpoint(), self.audit.checkpoint())
            try:
                yield
                self._persist()
            except CouncilError as e:
                self._rollback(marks)
                log.warning("%s rejected: %s (%s)", name, e.code, e.message)
                raise
            except Exception:
                self._rollback(marks)
                log.exception("%s failed", name)
                raise

    def _rollback(self, marks: tuple) -> None:
        proposals_mark, votes_mark, audit_mark = marks
        self.proposals.rollback(proposals_mark)
        self.votes.rollback(votes_mark)
        self.audit.rollback(audit_mark)

    def _persist(self) -> None:
        if self.state_store is None:
            return
        try:
            self.state_store.save(self.snapshot())
        except (OSError, TypeError, ValueError) as e:
            log.exception("Could not save council state to %s", self.state_store.path)
            raise StorageError(f"Could not save council state: {e}") from e
