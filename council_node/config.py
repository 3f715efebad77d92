# council_node/config.py
import copy
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from .council_runtime.atomic_store import AtomicStateStore
from .council_runtime.governance import GovernanceService
from .council_runtime.seed import load_seed

CONFIG_FILENAME = "council_config.yaml"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

# -------- Defaults --------
_DEFAULT: Dict[str, Any] = {
    "persistence": {
        "enabled": True,
        "state_path": "council_state.json",
        "keep_backups": 2,
    },
    "logging": {"level": "INFO"},
    "server": {
        "host": "127.0.0.1",  # uvicorn bind address
        "port": 8000,
    },
    "cors": {
        # Origins of the dashboard frontend
        "origins": [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    },
    "dashboard": {"recent_audit_limit": 10},
    "seed": {"file": ""},
}


def _as_bool(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


# -------- ENV overrides --------
_ENV_MAP = {
    ("persistence", "state_path"): ("COUNCIL_STATE_PATH", str),
    ("persistence", "enabled"): ("COUNCIL_PERSIST", _as_bool),
    ("logging", "level"): ("COUNCIL_LOG_LEVEL", str),
    ("server", "host"): ("COUNCIL_HOST", str),
    ("server", "port"): ("COUNCIL_PORT", int),
    ("seed", "file"): ("COUNCIL_SEED_FILE", str),
}


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError:
            logging.getLogger(__name__).warning("Ignoring %s=%r (not a valid %s)", env_name, val, key)
            continue
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def load_config(repo_root: Optional[str] = None) -> Dict[str, Any]:
    """
    Load repo_root/council_config.yaml over the defaults, then apply ENV
    overrides. A missing file means defaults; a file that is not a mapping
    raises ValueError.
    """
    root = repo_root or os.getcwd()
    path = os.path.join(root, CONFIG_FILENAME)
    cfg = copy.deepcopy(_DEFAULT)

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        cfg = _deep_merge(cfg, data)

    cfg = _apply_env_overrides(cfg)

    origins = cfg.get("cors", {}).get("origins")
    if isinstance(origins, str):
        cfg["cors"]["origins"] = [origins]

    return cfg


# -------- Small helpers used by the app --------


def get_bind_host(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("server", {}).get("host", "127.0.0.1"))


def get_bind_port(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("server", {}).get("port", 8000))


def get_cors_origins(cfg: Dict[str, Any]) -> List[str]:
    return list(cfg.get("cors", {}).get("origins", []))


def get_recent_audit_limit(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("dashboard", {}).get("recent_audit_limit", 10))


def get_seed_file(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("seed", {}).get("file") or "")


def get_state_store(cfg: Dict[str, Any]) -> Optional[AtomicStateStore]:
    persistence = cfg.get("persistence", {})
    if not persistence.get("enabled", True):
        return None
    return AtomicStateStore(
        persistence.get("state_path", "council_state.json"),
        keep_backups=int(persistence.get("keep_backups", 2)),
    )


def configure_logging(cfg: Dict[str, Any]) -> None:
    level = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def build_service(cfg: Dict[str, Any]) -> GovernanceService:
    """Build the service for ``cfg``: attach persistence and apply the seed file."""
    service = GovernanceService.build(state_store=get_state_store(cfg))
    seed_file = get_seed_file(cfg)
    if seed_file:
        load_seed(service, seed_file)
    return service
