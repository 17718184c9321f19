"""
tests/conftest.py -- Shared test fixtures for the identity backend tests.

This module provides:
  - make_settings(): Settings with a fixed secret and the minimum bcrypt cost
  - _make_test_store(): isolated named shared-memory SQLite UserStore
  - hasher / store: unit-test fixtures
  - api_client: TestClient over create_app() with one pre-registered user
  - prod_client: TestClient over create_app() with debug off

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Every app is built through create_app(settings, store), so nothing here
depends on environment variables or the get_settings() singleton.
"""

from __future__ import annotations

import itertools
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.config import Settings

TEST_SECRET = "test-secret-key-for-unit-tests-0123456789abcdef"

# Credentials of the user pre-registered by api_client.
API_USERNAME = "apiuser"
API_EMAIL = "apiuser@example.com"
API_PASSWORD = "ApiPass123"

_db_counter = itertools.count()


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "bcrypt_rounds": 4,
        "token_ttl_hours": 1,
        "allowed_hosts": ["*"],
    }
    values.update(overrides)
    return Settings(**values)


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    The counter keeps names unique so modules never share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_users_{db_suffix}_{next(_db_counter)}?mode=memory&cache=shared&uri=true")


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """Minimum bcrypt cost -- the algorithm is the same, only faster."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = _make_test_store("unit")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses a real create_app() with an isolated in-memory store.
    One user (API_USERNAME / API_EMAIL / API_PASSWORD) is registered before
    the client starts and a token is minted for it with the app's own issuer.
    """
    user_store = _make_test_store("api")
    app = create_app(make_settings(), user_store)

    user = User(
        username=API_USERNAME,
        email=API_EMAIL,
        hashed_password=app.state.hasher.hash(API_PASSWORD),
    )
    uid = user_store.create_user(user)
    token = app.state.token_issuer.issue(uid, API_USERNAME, API_EMAIL)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()


@pytest.fixture(scope="module")
def prod_client() -> Generator[TestClient, None, None]:
    """TestClient over an app with debug off, so debug-only routes are absent."""
    user_store = _make_test_store("prod")
    app = create_app(make_settings(debug=False), user_store)
    with TestClient(app) as client:
        yield client
    user_store.close()
