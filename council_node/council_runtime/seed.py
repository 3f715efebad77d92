"""
Seed data loader.

Replays a YAML (or JSON) document through the GovernanceService commands,
so seeded proposals and votes get audit entries and obey every invariant:

    actor: system                 # who moves seeded statuses (default "system")
    proposals:
      - key: proposal-001         # local handle, referenced by votes below
        title: Integrate U.S. Digital Asset Bill Context
        description: ...
        author: node-delta
        status: active            # optional, default pending
        voting_ends_at: "2025-10-10T23:59:59Z"
    votes:
      - proposal: proposal-001
        voter: node-alpha
        choice: approve

A proposal whose (title, author) already exists is not submitted again, and a
vote whose voter already voted is skipped, so loading the same file twice is
harmless.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml

from .errors import ValidationError
from .governance import GovernanceService
from .models import STATUS_PENDING

log = logging.getLogger(__name__)


def read_seed(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"Seed file {path} must contain a mapping")
    return data


def apply_seed(service: GovernanceService, data: Dict[str, Any]) -> Dict[str, int]:
    actor = str(data.get("actor") or "system")
    existing = {(p.title, p.author): p.id for p in service.list_proposals(order="oldest")}
    keys: Dict[str, str] = {}
    statuses: List[Tuple[str, str]] = []
    added = {"proposals": 0, "votes": 0}

    for raw in data.get("proposals") or []:
        title = str(raw.get("title", "")).strip()
        author = str(raw.get("author", "")).strip()
        pid = existing.get((title, author))
        if pid is None:
            proposal = service.submit_proposal(
                title,
                raw.get("description", ""),
                author,
                voting_ends_at=raw.get("voting_ends_at"),
            )
            pid = proposal.id
            existing[(title, author)] = pid
            added["proposals"] += 1

            status = str(raw.get("status") or STATUS_PENDING).strip().lower()
            if status != STATUS_PENDING:
                statuses.append((pid, status))

        if raw.get("key"):
            keys[str(raw["key"])] = pid

    for raw in data.get("votes") or []:
        ref = str(raw.get("proposal", ""))
        pid = keys.get(ref, ref)
        voter = str(raw.get("voter", "")).strip()
        if service.has_voted(pid, voter):
            continue
        service.cast_vote(pid, voter, raw.get("choice", ""))
        added["votes"] += 1

    # statuses last: votes cannot be cast once a proposal is approved/rejected
    for pid, status in statuses:
        service.update_proposal_status(pid, status, actor)

    log.info("Seed applied: %d proposals, %d votes", added["proposals"], added["votes"])
    return added


def load_seed(service: GovernanceService, path: Union[str, Path]) -> Dict[str, int]:
    return apply_seed(service, read_seed(path))
