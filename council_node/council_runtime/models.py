# council_node/council_runtime/models.py
from __future__ import annotations

"""
Runtime records for proposals, votes, tallies and audit entries.

All records are frozen dataclasses. A proposal status change produces a new
Proposal (dataclasses.replace) that the ProposalStore swaps in; votes and
audit entries are never replaced.

Timestamps are ISO-8601 UTC strings with millisecond precision and a "Z"
suffix, e.g. "2025-10-03T13:00:00.000Z".
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

# ---------------------------------------------------------------------------
# Proposal status / vote choice vocabularies
# ---------------------------------------------------------------------------

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

VALID_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_APPROVED, STATUS_REJECTED)
OPEN_STATUSES = frozenset({STATUS_PENDING, STATUS_ACTIVE})

CHOICE_APPROVE = "approve"
CHOICE_REJECT = "reject"
CHOICE_ABSTAIN = "abstain"

VALID_CHOICES = (CHOICE_APPROVE, CHOICE_REJECT, CHOICE_ABSTAIN)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting the trailing "Z" form."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Proposal:
    id: str
    title: str
    description: str
    author: str
    status: str = STATUS_PENDING
    created_at: str = ""
    voting_ends_at: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "author": self.author,
            "status": self.status,
            "created_at": self.created_at,
            "voting_ends_at": self.voting_ends_at,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Proposal":
        ends = raw.get("voting_ends_at")
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title", "")),
            description=str(raw.get("description", "")),
            author=str(raw.get("author", "")),
            status=str(raw.get("status", STATUS_PENDING)),
            created_at=str(raw.get("created_at", "")),
            voting_ends_at=str(ends) if ends else None,
        )


@dataclass(frozen=True)
class Vote:
    proposal_id: str
    voter: str
    choice: str
    timestamp: str

    @property
    def key(self) -> tuple:
        return (self.proposal_id, self.voter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Vote":
        return cls(
            proposal_id=str(raw["proposal_id"]),
            voter=str(raw["voter"]),
            choice=str(raw["choice"]),
            timestamp=str(raw.get("timestamp", "")),
        )


@dataclass(frozen=True)
class Tally:
    approve: int = 0
    reject: int = 0
    abstain: int = 0

    @property
    def total(self) -> int:
        return self.approve + self.reject + self.abstain

    def percentages(self) -> Dict[str, float]:
        """Share of each choice in percent, rounded to one decimal."""
        total = self.total
        if total == 0:
            return {c: 0.0 for c in VALID_CHOICES}
        return {
            CHOICE_APPROVE: round(self.approve * 100.0 / total, 1),
            CHOICE_REJECT: round(self.reject * 100.0 / total, 1),
            CHOICE_ABSTAIN: round(self.abstain * 100.0 / total, 1),
        }

    def to_dict(self) -> Dict[str, int]:
        return {
            "approve": self.approve,
            "reject": self.reject,
            "abstain": self.abstain,
            "total": self.total,
        }


@dataclass(frozen=True)
class AuditEntry:
    id: str
    timestamp: str
    action: str
    actor: str
    details: Any = field(default=None)

    def __post_init__(self) -> None:
        # dict details are held read-only; every reader shares this entry
        if isinstance(self.details, Mapping):
            object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> Dict[str, Any]:
        details = dict(self.details) if isinstance(self.details, Mapping) else self.details
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "action": self.action,
            "actor": self.actor,
            "details": details,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AuditEntry":
        return cls(
            id=str(raw["id"]),
            timestamp=str(raw.get("timestamp", "")),
            action=str(raw.get("action", "")),
            actor=str(raw.get("actor", "")),
            details=raw.get("details"),
        )
