"""
Shared test fixtures for storegate.

Provides a controllable clock, a recording sleep, an in-memory gate, and a
fully wired application over a throwaway SQLite file.
"""

import os
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.orm import Session

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from storegate.config import Settings
from storegate.main import create_app
from storegate.models import AdminUser
from storegate.services.audit import MemoryAttemptLog
from storegate.services.gate import LoginGate
from storegate.services.ledger import AttemptLedger, MemoryLedgerStore
from storegate.services.policy import RateLimitPolicy
from storegate.utils.security import get_password_hash
from storegate.utils.time import utcnow


SITE_PASSWORD = "open-sesame"
SITE_PASSWORD_HASH = get_password_hash(SITE_PASSWORD)

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct horse battery staple"
ADMIN_PASSWORD_HASH = get_password_hash(ADMIN_PASSWORD)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Async sleep replacement that remembers what it was asked to wait."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class CountingCheck:
    """Credential check stub returning a fixed principal and counting calls."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return MemoryLedgerStore()


@pytest.fixture
def ledger(store):
    return AttemptLedger(store)


@pytest.fixture
def attempt_log():
    return MemoryAttemptLog()


@pytest.fixture
def gate(ledger, attempt_log, clock, sleep):
    """Gate over the in-memory ledger with default thresholds (2 / 5, 60s)."""
    return LoginGate(ledger, RateLimitPolicy(), attempt_log=attempt_log, clock=clock, sleep=sleep)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "storegate-test.db"


@pytest.fixture
def settings(db_path):
    return Settings(
        secret_key="test-secret-key",
        database_url=f"sqlite+aiosqlite:///{db_path}",
        site_password_hash=SITE_PASSWORD_HASH,
        cookie_secure=False,
        # TestClient connects as "testclient"; tests pick identities via X-Forwarded-For
        trusted_proxies=["testclient"],
    )


@pytest.fixture
def app(settings, clock, sleep):
    app = create_app(settings)
    app.state.clock = clock
    app.state.sleep = sleep
    return app


@pytest.fixture
def client(app):
    """Test client with the lifespan running, so tables exist."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_user(client, db_path):
    """Insert an active admin straight into the database file."""
    engine = create_sync_engine(f"sqlite:///{db_path}")
    with Session(engine) as session:
        session.add(AdminUser(email=ADMIN_EMAIL, password_hash=ADMIN_PASSWORD_HASH, is_active=True))
        session.commit()
    engine.dispose()
    return ADMIN_EMAIL


@pytest.fixture
def admin_headers(client, admin_user):
    response = client.post(
        "/api/auth/admin/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def site_headers(client):
    response = client.post("/api/auth/unlock", json={"password": SITE_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
