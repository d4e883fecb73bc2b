"""
tests/conftest.py -- Shared test fixtures for Taskguard.

This module provides:
  - settings / clock / credentials / issuer / store / service: the auth core
    wired from explicit test values, with a FixedClock so lockout and expiry
    boundaries can be stepped across to the second.
  - api_client: TestClient for the real FastAPI app with a patched lifespan
    that wires an isolated store and a FixedClock-driven SessionService.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit-level fixtures stay on one thread and use :memory:.

Environment variables must be set before any api/ or core/ import so
get_settings() builds a dev configuration (generated secrets, low bcrypt
cost, permissive host list) instead of raising.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any core/api import so get_settings() can
# auto-generate token secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.credentials import CredentialStore
from auth.service import SessionService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.clock import FixedClock
from core.config import Settings

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

STRONG_PASSWORD = "Tr0ub4dor&3"
OTHER_STRONG_PASSWORD = "C0rrect-H0rse!Btry"


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        debug=True,
        access_token_secret="a" * 16 + "access-secret-for-tests-only",
        refresh_token_secret="r" * 16 + "refresh-secret-for-tests-only",
        access_token_expire_seconds=15 * 60,
        refresh_token_expire_seconds=7 * 24 * 3600,
        bcrypt_rounds=4,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(rounds=4, lockout_threshold=5, lockout_duration=timedelta(hours=2))


@pytest.fixture
def issuer(settings: Settings, clock: FixedClock) -> TokenIssuer:
    return TokenIssuer.from_settings(settings, clock)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, credentials: CredentialStore, issuer: TokenIssuer, clock: FixedClock) -> SessionService:
    return SessionService(store, credentials, issuer, clock)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, service: SessionService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test store and service into app.state so TestClient
    routes see an isolated DB rather than the production database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_service = service
        yield

    return test_lifespan


@pytest.fixture
def api_client(settings: Settings, credentials: CredentialStore) -> Generator[tuple[TestClient, FixedClock], None, None]:
    """Yield (client, clock) backed by a fresh named shared-memory DB.

    The clock drives token iat/exp and lockout, so tests can move time
    forward between requests. Rate limiting is switched off; it is per-IP
    and every TestClient request comes from the same address.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    clock = FixedClock(T0)
    service = SessionService(user_store, credentials, TokenIssuer.from_settings(settings, clock), clock)

    app.router.lifespan_context = _patch_lifespan(user_store, service)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, clock

    limiter.enabled = True
    user_store.close()
