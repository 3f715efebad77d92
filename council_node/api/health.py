# council_node/api/health.py
from __future__ import annotations

"""
Health endpoints.

Routes
------
- GET /health/ping
    Simple heartbeat endpoint.

- GET /health/summary
    Dashboard counters plus whether state is persisted and where.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .governance import get_service
from ..council_runtime.governance import GovernanceService

router = APIRouter(prefix="/health", tags=["health"])


class PingResponse(BaseModel):
    ok: bool = True
    ts: float = Field(..., description="Server timestamp.")
    msg: str = "pong"


class SummaryResponse(BaseModel):
    ok: bool = True
    total_proposals: int
    active_proposals: int
    total_votes: int
    total_audit_entries: int
    persisted: bool
    state_path: Optional[str] = None


@router.get("/ping", response_model=PingResponse)
def ping() -> PingResponse:
    return PingResponse(ts=time.time())


@router.get("/summary", response_model=SummaryResponse)
def summary(service: GovernanceService = Depends(get_service)) -> SummaryResponse:
    store = service.state_store
    return SummaryResponse(
        persisted=store is not None,
        state_path=str(store.path) if store is not None else None,
        **service.stats(),
    )
