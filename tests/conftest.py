"""
tests/conftest.py -- Shared test fixtures for Mode.

This module provides:
  - store: an isolated in-memory UserStore per test
  - ctx: a SessionContext over that store with no incoming cookie
  - make_user: create a user with a real bcrypt hash
  - reset_rate_limits: autouse, clears the shared slowapi counters
  - client: TestClient over the assembled ASGI app (api + web), wired to the
    same store through a patched lifespan, follow_redirects=False

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
Each test gets a uuid-suffixed name so no state leaks between tests.

Environment variables must be set before any core/auth import:
  DEBUG=true          -- get_settings() auto-generates SECRET_KEY
  ALLOWED_HOSTS=["*"] -- TestClient sends Host: testserver
  LOGIN_RATE_LIMIT    -- high enough that the suite never trips the limiter;
                         counters are also reset around every test
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager, suppress
from uuid import uuid4

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.credentials import create_user
from auth.models import User
from auth.session import SessionContext
from auth.store import UserStore
from core.limiter import limiter

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store."""
    return UserStore(db_url=f"sqlite:///file:test_auth_{uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task, same as production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.purge_task

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = _make_test_store()
    yield user_store
    user_store.close()


@pytest.fixture
def ctx(store: UserStore) -> SessionContext:
    return SessionContext(store)


@pytest.fixture
def make_user(store: UserStore) -> Callable[..., User]:
    """Return a factory that registers a user through the credential gateway."""

    def _make(email: str = "a@b.com", password: str = "secret1") -> User:
        return create_user(store, email, password)

    return _make


@pytest.fixture
def client(store: UserStore) -> Generator[TestClient, None, None]:
    """TestClient over the full app sharing the `store` fixture.

    follow_redirects=False is essential: tests assert on redirect locations
    and Set-Cookie headers, both invisible once the redirect is followed.
    """
    app.router.lifespan_context = _patch_lifespan(store)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_rate_limits() -> Generator[None, None, None]:
    """Start and end every test with empty limiter counters (the store is process-wide)."""
    limiter.reset()
    yield
    limiter.reset()
