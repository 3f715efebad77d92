# council_node/council_runtime/errors.py
from __future__ import annotations

"""
Error taxonomy for the council runtime.

Every error carries a short machine-readable ``code`` (the same strings the
HTTP layer returns as ``detail``) plus a human-readable message.

    ValidationError        -> "validation_failed"   (missing / blank field)
    NotFoundError          -> "proposal_not_found"
    DuplicateVoteError     -> "already_voted"
    ProposalClosedError    -> "proposal_closed"
    InvalidTransitionError -> "invalid_transition"
    StorageError           -> "storage_failed"      (fatal for the command)
"""

from typing import Optional


class CouncilError(RuntimeError):
    code = "council_error"

    def __init__(self, message: str = "", *, code: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.code


class ValidationError(CouncilError, ValueError):
    code = "validation_failed"


class NotFoundError(CouncilError, LookupError):
    code = "proposal_not_found"


class DuplicateVoteError(CouncilError):
    code = "already_voted"


class ProposalClosedError(CouncilError):
    code = "proposal_closed"


class InvalidTransitionError(CouncilError):
    code = "invalid_transition"


class StorageError(CouncilError):
    code = "storage_failed"


def require_text(value: object, field: str) -> str:
    """Return ``value`` trimmed, or raise ValidationError when it is blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string")
    return value.strip()
