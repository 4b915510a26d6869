"""
tests/conftest.py -- Shared test fixtures for the registry test suite.

This module provides:
  - FakeClock: a controllable timezone-aware clock for expiry tests
  - credential_store / make_manager / manager / configured_manager: auth core
    objects backed by a credential file under tmp_path
  - registry: an in-memory RegistryStore for unit tests
  - client: TestClient over the real ASGI app (api + web) with a patched
    lifespan that wires isolated stores into app.state

Design: the registry used by the client is a file-backed SQLite DB under
tmp_path (not ':memory:') because TestClient runs sync route handlers in a
thread pool, and a plain in-memory DB is per-connection.

BCRYPT_ROUNDS and DEBUG must be set before any module calls get_settings()
so the cached Settings use the cheap test cost factor.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.manager import AuthManager
from auth.store import CredentialStore
from core.config import get_settings
from registry.store import RegistryStore

TEST_PASSWORD = "correct-horse-battery"
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock returning a fixed UTC instant until advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Auth core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_path(tmp_path):
    return tmp_path / ".registry_admin_config"


@pytest.fixture
def credential_store(credential_path) -> CredentialStore:
    return CredentialStore(credential_path)


@pytest.fixture
def make_manager(credential_store, clock):
    """Factory for AuthManagers sharing the test credential file and clock."""

    def _make(store: CredentialStore | None = None) -> AuthManager:
        return AuthManager(store or credential_store, bcrypt_rounds=TEST_ROUNDS, clock=clock)

    return _make


@pytest.fixture
def manager(make_manager) -> AuthManager:
    return make_manager()


@pytest.fixture
def configured_manager(manager) -> AuthManager:
    manager.setup(TEST_PASSWORD)
    return manager


# ---------------------------------------------------------------------------
# Registry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> Generator[RegistryStore, None, None]:
    store = RegistryStore("sqlite:///:memory:")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# ASGI client
# ---------------------------------------------------------------------------


def _patch_lifespan(auth: AuthManager, registry: RegistryStore):
    """Return a lifespan that installs pre-built test stores instead of the real ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = auth
        app.state.registry = registry
        yield

    return test_lifespan


@pytest.fixture
def cookie_name() -> str:
    return get_settings().session_cookie_name


@pytest.fixture
def client(manager, tmp_path) -> Generator[TestClient, None, None]:
    """TestClient with follow_redirects=False so tests can assert on Location headers."""
    registry = RegistryStore(f"sqlite:///{tmp_path / 'registry.db'}")
    app.router.lifespan_context = _patch_lifespan(manager, registry)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client
    registry.close()


@pytest.fixture
def https_client(manager, tmp_path) -> Generator[TestClient, None, None]:
    registry = RegistryStore(f"sqlite:///{tmp_path / 'registry.db'}")
    app.router.lifespan_context = _patch_lifespan(manager, registry)
    with TestClient(app, base_url="https://testserver", follow_redirects=False) as test_client:
        yield test_client
    registry.close()
