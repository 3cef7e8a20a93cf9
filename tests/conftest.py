"""
tests/conftest.py -- Shared test fixtures for authgate tests.

This module provides:
  - sqlite_url(): a throwaway SQLite file database URL
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient over the real app with an isolated store and limiter
  - store / service: component-level fixtures for unit tests

Design: SQLite files under pytest's tmp_path (not :memory:) are required
because TestClient and AuthService run blocking calls in worker threads.
:memory: DBs are per-connection and would present a blank schema to each
worker thread. A file DB is shared by every pooled connection.

Environment must be set before any app import: DEBUG=true so get_settings()
auto-generates SECRET_KEY, BCRYPT_ROUNDS=4 so hashing is fast, and
ALLOWED_HOSTS so TrustedHostMiddleware accepts TestClient's "testserver".
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import RateLimiter
from api.main import app
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings


def sqlite_url(directory: Path) -> str:
    return f"sqlite:///{directory / 'users.db'}"


def _patch_lifespan(user_store: UserStore, limiter: RateLimiter):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.rate_limiter = limiter
        app.state.auth_service = AuthService(user_store, timeout_seconds=5.0)
        yield
        limiter.close()

    return test_lifespan


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> Generator[UserStore, None, None]:
    s = UserStore(sqlite_url(tmp_path))
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore) -> AuthService:
    return AuthService(store, timeout_seconds=5.0)


# ---------------------------------------------------------------------------
# Module-scoped client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(tmp_path_factory: pytest.TempPathFactory) -> Generator[tuple[TestClient, UserStore, RateLimiter], None, None]:
    """Yield (client, store, limiter) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, dependencies and exception handlers.
    """
    user_store = UserStore(sqlite_url(tmp_path_factory.mktemp("api")))
    limiter = RateLimiter.from_settings(get_settings())
    app.router.lifespan_context = _patch_lifespan(user_store, limiter)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, limiter

    user_store.close()


@pytest.fixture
def client(api_client: tuple[TestClient, UserStore, RateLimiter]) -> TestClient:
    """The module's TestClient with rate-limit counters cleared for this test."""
    test_client, _store, limiter = api_client
    limiter.reset()
    return test_client


@pytest.fixture
def unique_email() -> str:
    return f"user-{uuid.uuid4().hex[:12]}@example.com"
