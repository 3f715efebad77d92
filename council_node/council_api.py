from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from council_node.api import governance, health
from council_node.config import (
    build_service,
    configure_logging,
    get_cors_origins,
    get_recent_audit_limit,
    load_config,
)
from council_node.council_runtime.governance import GovernanceService

log = logging.getLogger(__name__)


def create_app(
    service: Optional[GovernanceService] = None,
    cfg: Optional[Dict[str, Any]] = None,
) -> FastAPI:
    """
    Build the FastAPI app. Tests pass their own ``service``; otherwise one is
    built from the config (persistence + optional seed file).
    """
    if cfg is None:
        cfg = load_config(os.getcwd())
    if service is None:
        configure_logging(cfg)
        service = build_service(cfg)

    app = FastAPI(title="Council Node API", version="0.1.0")
    app.state.service = service
    app.state.recent_audit_limit = get_recent_audit_limit(cfg)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(cfg),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(governance.router)
    app.include_router(health.router)

    @app.get("/health")
    def health_root():
        return {"ok": True}

    log.info("Council API ready (%d proposals loaded)", service.total_proposals)
    return app
