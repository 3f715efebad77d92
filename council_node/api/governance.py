from __future__ import annotations

from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from council_node.council_runtime.errors import (
    CouncilError,
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ProposalClosedError,
    StorageError,
    ValidationError,
)
from council_node.council_runtime.governance import GovernanceService
from council_node.council_runtime.models import Proposal
from council_node.council_runtime.proposals import ORDER_NEWEST

__all__ = [
    "ProposalCreate",
    "VoteRequest",
    "StatusUpdate",
    "router",
    "get_service",
]

router = APIRouter(prefix="/governance", tags=["governance"])

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (DuplicateVoteError, 409),
    (ProposalClosedError, 409),
    (InvalidTransitionError, 409),
    (StorageError, 500),
)


class ProposalCreate(BaseModel):
    title: str
    description: str
    author: str
    voting_ends_at: Optional[str] = None


class VoteRequest(BaseModel):
    voter: str
    choice: str = Field(..., description="approve | reject | abstain")


class StatusUpdate(BaseModel):
    status: str = Field(..., description="pending | active | approved | rejected")
    actor: str


def get_service(request: Request) -> GovernanceService:
    return request.app.state.service


def _raise_http(e: CouncilError) -> NoReturn:
    for cls, status_code in _STATUS_BY_ERROR:
        if isinstance(e, cls):
            raise HTTPException(status_code=status_code, detail=e.code) from e
    raise HTTPException(status_code=400, detail=e.code) from e


def _proposal_view(service: GovernanceService, proposal: Proposal) -> Dict[str, Any]:
    tally = service.tally(proposal.id)
    out = proposal.to_dict()
    out["tally"] = tally.to_dict()
    out["percentages"] = tally.percentages()
    return out


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


@router.get("/proposals")
def list_proposals(
    order: str = Query(ORDER_NEWEST, description="newest | oldest | most_votes"),
    service: GovernanceService = Depends(get_service),
):
    try:
        proposals = [_proposal_view(service, p) for p in service.list_proposals(order=order)]
    except CouncilError as e:
        _raise_http(e)
    return {"ok": True, "proposals": proposals}


@router.post("/proposals")
def create_proposal(payload: ProposalCreate, service: GovernanceService = Depends(get_service)):
    try:
        proposal = service.submit_proposal(
            payload.title,
            payload.description,
            payload.author,
            voting_ends_at=payload.voting_ends_at,
        )
    except CouncilError as e:
        _raise_http(e)
    return {"ok": True, "proposal": _proposal_view(service, proposal)}


@router.get("/proposals/{proposal_id}")
def get_proposal(
    proposal_id: str,
    actor: Optional[str] = None,
    service: GovernanceService = Depends(get_service),
):
    try:
        proposal = service.get_proposal(proposal_id)
    except CouncilError as e:
        _raise_http(e)
    out: Dict[str, Any] = {"ok": True, "proposal": _proposal_view(service, proposal)}
    if actor:
        out["has_voted"] = service.has_voted(proposal_id, actor)
    return out


@router.post("/proposals/{proposal_id}/vote")
def vote_proposal(proposal_id: str, payload: VoteRequest, service: GovernanceService = Depends(get_service)):
    try:
        vote = service.cast_vote(proposal_id, payload.voter, payload.choice)
    except CouncilError as e:
        _raise_http(e)
    return {"ok": True, "vote": vote.to_dict(), "tally": service.tally(proposal_id).to_dict()}


@router.post("/proposals/{proposal_id}/status")
def update_status(proposal_id: str, payload: StatusUpdate, service: GovernanceService = Depends(get_service)):
    try:
        proposal = service.update_proposal_status(proposal_id, payload.status, payload.actor)
    except CouncilError as e:
        _raise_http(e)
    return {"ok": True, "proposal": _proposal_view(service, proposal)}


@router.get("/proposals/{proposal_id}/votes")
def proposal_votes(
    proposal_id: str,
    newest_first: bool = True,
    service: GovernanceService = Depends(get_service),
):
    try:
        service.get_proposal(proposal_id)
    except CouncilError as e:
        _raise_http(e)
    votes = service.votes_for(proposal_id, newest_first=newest_first)
    return {"ok": True, "votes": [v.to_dict() for v in votes]}


# ---------------------------------------------------------------------------
# Dashboard reads
# ---------------------------------------------------------------------------


@router.get("/votes")
def list_votes(newest_first: bool = False, service: GovernanceService = Depends(get_service)):
    return {"ok": True, "votes": [v.to_dict() for v in service.all_votes(newest_first=newest_first)]}


@router.get("/audit")
def audit_log(
    limit: Optional[int] = Query(None, ge=0),
    service: GovernanceService = Depends(get_service),
):
    entries = service.audit_log(newest_first=True, limit=limit)
    return {"ok": True, "total": service.total_audit_entries, "entries": [e.to_dict() for e in entries]}


@router.get("/audit/recent")
def recent_activity(request: Request, service: GovernanceService = Depends(get_service)):
    limit = getattr(request.app.state, "recent_audit_limit", 10)
    entries = service.audit_log(newest_first=True, limit=limit)
    return {"ok": True, "entries": [e.to_dict() for e in entries]}


@router.get("/stats")
def stats(service: GovernanceService = Depends(get_service)):
    return {"ok": True, **service.stats()}


@router.get("/pending")
def pending_for(actor: str = Query(..., min_length=1), service: GovernanceService = Depends(get_service)):
    proposals: List[Dict[str, Any]] = [_proposal_view(service, p) for p in service.proposals_needing_vote_from(actor)]
    return {"ok": True, "actor": actor, "proposals": proposals}
