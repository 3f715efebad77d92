# council_node/council_runtime/__init__.py
"""
Council runtime: proposals, votes and the audit trail.

Nothing in here knows about HTTP or the CLI; both call GovernanceService.
"""

from .audit import AuditLog, AuditRecorder
from .atomic_store import AtomicStateStore
from .errors import (
    CouncilError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ProposalClosedError,
    StorageError,
    ValidationError,
)
from .governance import GovernanceService
from .models import AuditEntry, Proposal, Tally, Vote
from .proposals import ProposalStore
from .votes import VoteLedger

__all__ = [
    "AtomicStateStore",
    "AuditEntry",
    "AuditLog",
    "AuditRecorder",
    "CouncilError",
    "DuplicateVoteError",
    "GovernanceService",
    "InvalidTransitionError",
    "NotFoundError",
    "Proposal",
    "ProposalClosedError",
    "ProposalStore",
    "StorageError",
    "Tally",
    "ValidationError",
    "Vote",
    "VoteLedger",
]
