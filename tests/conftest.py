"""
Shared test fixtures.

Core tests get a temporary SQLite ``database`` and a ``clock`` that only
moves when told to.  HTTP tests get a FastAPI TestClient wired to:
  • a temporary SQLite database (via app lifespan)
  • recording email / SMS senders (nothing is delivered)
  • slowapi throttling disabled
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.db import Database
from app.dependencies import get_email_sender, get_sms_sender
from app.main import app
from tests.mocks.models import START
from tests.mocks.services import FakeClock, RecordingSender


# ── Core fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
async def database(tmp_path):
    database = Database(str(tmp_path / "core.db"), pool_size=2, busy_timeout=1.0)
    await database.connect()
    yield database
    await database.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


# ── HTTP fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def email_outbox() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def sms_outbox() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def _test_env(monkeypatch, tmp_path):
    """Point the app lifespan at a temp database, speed up hashing, turn off IP throttling."""
    monkeypatch.setattr("app.main.DB_PATH", str(tmp_path / "test.db"))
    # cheapest bcrypt cost, hashes stay valid
    monkeypatch.setattr("app.services.passwords.BCRYPT_ROUNDS", 4)

    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(_test_env, email_outbox, sms_outbox) -> TestClient:
    """
    TestClient with recording senders.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    app.dependency_overrides[get_email_sender] = lambda: email_outbox
    app.dependency_overrides[get_sms_sender] = lambda: sms_outbox

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()
