# council_node/__main__.py
"""
Entry point for running the Council Node as a module:

    python -m council_node serve  [--host 127.0.0.1] [--port 8000]
    python -m council_node submit --actor alice --title T --description D
    python -m council_node vote   --actor bob PROPOSAL_ID approve
    python -m council_node status --actor chair PROPOSAL_ID active
    python -m council_node list   [--order newest|oldest|most_votes]
    python -m council_node show   PROPOSAL_ID
    python -m council_node audit  [--limit 10]
    python -m council_node stats
    python -m council_node pending --actor bob
    python -m council_node seed   FILE

Global options:
  --state PATH      state snapshot (default from council_config.yaml / COUNCIL_STATE_PATH)
  --no-persist      keep everything in memory for this run

Every command prints JSON. Rejected commands print {"ok": false, "error": code}
and exit with status 1.
"""

from __future__ import annotations

import argparse
import json
import os
from typing import Any, Dict, List, Optional

from .config import (
    build_service,
    configure_logging,
    get_bind_host,
    get_bind_port,
    load_config,
)
from .council_runtime.errors import CouncilError
from .council_runtime.governance import GovernanceService
from .council_runtime.models import VALID_CHOICES, VALID_STATUSES
from .council_runtime.proposals import ORDER_NEWEST, VALID_ORDERS
from .council_runtime.seed import load_seed


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="council-node",
        description="Council governance node: proposals, votes and audit trail",
    )
    p.add_argument("--state", default=None, help="Path to state JSON")
    p.add_argument("--no-persist", action="store_true", help="Do not read or write the state file")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    submit = sub.add_parser("submit", help="Submit a proposal")
    submit.add_argument("--actor", required=True)
    submit.add_argument("--title", required=True)
    submit.add_argument("--description", required=True)
    submit.add_argument("--voting-ends-at", default=None)

    vote = sub.add_parser("vote", help="Cast a vote")
    vote.add_argument("--actor", required=True)
    vote.add_argument("proposal_id")
    vote.add_argument("choice", choices=VALID_CHOICES)

    status = sub.add_parser("status", help="Move a proposal to another status")
    status.add_argument("--actor", required=True)
    status.add_argument("proposal_id")
    status.add_argument("status", choices=VALID_STATUSES)

    lst = sub.add_parser("list", help="List proposals with tallies")
    lst.add_argument("--order", choices=VALID_ORDERS, default=ORDER_NEWEST)

    show = sub.add_parser("show", help="Show one proposal with its votes")
    show.add_argument("proposal_id")

    audit = sub.add_parser("audit", help="Show the audit log, newest first")
    audit.add_argument("--limit", type=int, default=None)

    sub.add_parser("stats", help="Dashboard counters")

    pending = sub.add_parser("pending", help="Open proposals an actor has not voted on")
    pending.add_argument("--actor", required=True)

    seed = sub.add_parser("seed", help="Load proposals/votes from a YAML or JSON file")
    seed.add_argument("file")

    return p.parse_args(argv)


def _proposal_out(service: GovernanceService, proposal) -> Dict[str, Any]:
    out = proposal.to_dict()
    out["tally"] = service.tally(proposal.id).to_dict()
    return out


def run_command(service: GovernanceService, args: argparse.Namespace) -> Dict[str, Any]:
    cmd = args.command

    if cmd == "submit":
        proposal = service.submit_proposal(
            args.title, args.description, args.actor, voting_ends_at=args.voting_ends_at
        )
        return {"ok": True, "proposal": proposal.to_dict()}

    if cmd == "vote":
        vote = service.cast_vote(args.proposal_id, args.actor, args.choice)
        return {"ok": True, "vote": vote.to_dict(), "tally": service.tally(args.proposal_id).to_dict()}

    if cmd == "status":
        proposal = service.update_proposal_status(args.proposal_id, args.status, args.actor)
        return {"ok": True, "proposal": proposal.to_dict()}

    if cmd == "list":
        return {"ok": True, "proposals": [_proposal_out(service, p) for p in service.list_proposals(order=args.order)]}

    if cmd == "show":
        proposal = service.get_proposal(args.proposal_id)
        out = _proposal_out(service, proposal)
        out["percentages"] = service.tally(proposal.id).percentages()
        out["votes"] = [v.to_dict() for v in service.votes_for(proposal.id, newest_first=True)]
        return {"ok": True, "proposal": out}

    if cmd == "audit":
        return {"ok": True, "entries": [e.to_dict() for e in service.audit_log(limit=args.limit)]}

    if cmd == "stats":
        return {"ok": True, **service.stats()}

    if cmd == "pending":
        return {"ok": True, "proposals": [p.to_dict() for p in service.proposals_needing_vote_from(args.actor)]}

    if cmd == "seed":
        return {"ok": True, "added": load_seed(service, args.file)}

    raise ValueError(f"unknown command: {cmd}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    cfg = load_config(os.getcwd())
    if args.state:
        cfg["persistence"]["state_path"] = args.state
    if args.no_persist:
        cfg["persistence"]["enabled"] = False
    configure_logging(cfg)

    if args.command == "serve":
        import uvicorn

        from .council_api import create_app

        app = create_app(cfg=cfg)
        uvicorn.run(app, host=args.host or get_bind_host(cfg), port=args.port or get_bind_port(cfg))
        return 0

    try:
        service = build_service(cfg)
        result = run_command(service, args)
    except CouncilError as e:
        print(json.dumps({"ok": False, "error": e.code, "message": e.message}))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
