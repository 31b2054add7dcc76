"""
tests/conftest.py -- Shared test fixtures for UserDesk tests.

This module provides:
  - settings_factory: builds Settings from explicit values, isolated from .env/config.json
  - _make_test_store(): isolated named shared-memory SQLite store
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient over the real app with an isolated store
  - store / hasher / settings: unit-test building blocks

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient fixtures because route handlers run on worker threads.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

JWT_SECRET_KEY must be set before any api/ import: api.main resolves
Settings at import time and refuses to load without a secret.
BCRYPT_ROUNDS=4 keeps hashing fast; production uses 12.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any api/auth/core import so get_settings() succeeds.
os.environ.setdefault("JWT_SECRET_KEY", "test-signing-secret-0123456789-abcdefghij")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.config import Settings, get_settings

TEST_SECRET = "test-signing-secret-0123456789-abcdefghij"


def _make_settings(**overrides) -> Settings:
    """Build Settings from explicit values only.

    _env_file=None skips any developer .env; init arguments outrank the
    environment, so the process-level test variables do not leak in.
    """
    values = {
        "jwt_secret_key": TEST_SECRET,
        "jwt_issuer": "TestIssuer",
        "jwt_audience": "TestAudience",
        "jwt_expiration_minutes": 60,
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A uuid is appended so two fixtures never share (or tear down) the same
    in-memory database.
    """
    name = f"test_users_{db_suffix}_{uuid.uuid4().hex}"
    return UserStore(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and the process settings into app.state so
    TestClient routes see an isolated database rather than userdesk.db.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, get_settings(), user_store)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    One client per test module for speed. Tests register their own users
    with distinct emails, so ordering within a module does not matter.
    """
    user_store = _make_test_store("api")
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()


@pytest.fixture
def settings_factory():
    """Return a builder for Settings with per-test overrides."""
    return _make_settings


@pytest.fixture
def settings() -> Settings:
    return _make_settings()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)
