from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from council_node.config import load_config
from council_node.council_api import create_app
from council_node.council_runtime.atomic_store import AtomicStateStore
from council_node.council_runtime.governance import GovernanceService


class StepClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 10, 3, 13, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture(scope="function")
def service(clock):
    """Fresh in-memory service per test"""
    return GovernanceService.build(clock=clock)


@pytest.fixture(scope="function")
def state_store(tmp_path):
    return AtomicStateStore(tmp_path / "council_state.json", keep_backups=2)


@pytest.fixture(scope="function")
def persisted_service(state_store, clock):
    return GovernanceService.build(state_store=state_store, clock=clock)


@pytest.fixture(scope="function")
def client(service, tmp_path, monkeypatch):
    for name in ("COUNCIL_STATE_PATH", "COUNCIL_PERSIST", "COUNCIL_SEED_FILE"):
        monkeypatch.delenv(name, raising=False)
    app = create_app(service=service, cfg=load_config(str(tmp_path)))
    return TestClient(app)


@pytest.fixture
def proposal(service):
    return service.submit_proposal("T", "D", "alice")
