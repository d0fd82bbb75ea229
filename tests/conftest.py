"""Pytest configuration and fixtures."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing the app
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("TOKEN_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from gatheryourdeals.config import ClientSeed, Settings
from gatheryourdeals.repositories.memory import (
    InMemoryClientRepository,
    InMemoryTokenStore,
    InMemoryUserRepository,
)
from gatheryourdeals.services.password_service import PasswordHasher
from gatheryourdeals.wiring import Services, build_services

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-password-123"
TEST_CLIENT_ID = "app1"


class FakeClock:
    """Controllable replacement for ``utcnow`` in token tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def test_settings() -> Settings:
    """Settings for the in-memory backends with the minimum bcrypt cost."""
    return Settings(
        _env_file=None,
        storage_backend="memory",
        token_backend="memory",
        bcrypt_rounds=4,
        oauth_clients=[ClientSeed(id=TEST_CLIENT_ID)],
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def clients() -> InMemoryClientRepository:
    return InMemoryClientRepository()


@pytest.fixture
def tokens() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def services(test_settings, users, clients, tokens, hasher) -> Services:
    """Fully wired services over in-memory repositories."""
    return build_services(
        test_settings, users=users, clients=clients, tokens=tokens, hasher=hasher
    )


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client for testing without real Redis."""
    return AsyncMock()


@pytest.fixture
def bootstrapped_services(services) -> Services:
    """Services with an admin account already created (sync tests only)."""
    asyncio.run(services.auth.bootstrap_admin(ADMIN_USERNAME, ADMIN_PASSWORD))
    return services


@pytest.fixture
def client(bootstrapped_services, test_settings) -> Generator:
    """TestClient over an app wired to in-memory services.

    The lifespan seeds the ``app1`` client and passes the admin check.
    """
    from fastapi.testclient import TestClient

    from gatheryourdeals.main import create_app

    app = create_app(services=bootstrapped_services, settings=test_settings)
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def login(client):
    """Return a function that runs the password grant."""

    def _login(username: str, password: str, client_id: str = TEST_CLIENT_ID):
        return client.post(
            "/api/v1/oauth/token",
            data={
                "grant_type": "password",
                "username": username,
                "password": password,
                "client_id": client_id,
            },
        )

    return _login


@pytest.fixture
def admin_headers(login) -> dict:
    """Authorization header for the bootstrapped admin."""
    response = login(ADMIN_USERNAME, ADMIN_PASSWORD)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def user_headers(client, login) -> dict:
    """Authorization header for a freshly registered regular user."""
    client.post(
        "/api/v1/users",
        json={"username": "bob", "password": "bob-password-1", "clientId": TEST_CLIENT_ID},
    )
    response = login("bob", "bob-password-1")
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
