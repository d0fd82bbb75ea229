"""In-memory storage backends for tests and local development.

State lives in the process, so these backends do not survive a restart and
are not shared between workers. Expired token records are not purged here;
the token manager checks expiry on every read.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from gatheryourdeals.errors import AdminAlreadyExists, UsernameTaken
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.models.user import Role, User

logger = structlog.get_logger(__name__)


class InMemoryUserRepository:
    """Dict-backed user store keyed by ID, with a username index."""

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._ids_by_username: dict[str, UUID] = {}
        self._lock = asyncio.Lock()

    async def create_user(self, user: User) -> None:
        async with self._lock:
            self._insert(user)

    async def create_admin(self, user: User) -> None:
        async with self._lock:
            if self._admin_exists():
                raise AdminAlreadyExists()
            self._insert(user)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        return self._users.get(user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        user_id = self._ids_by_username.get(username)
        if user_id is None:
            return None
        return self._users.get(user_id)

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return
            self._users[user_id] = user.model_copy(
                update={
                    "password_hash": password_hash,
                    "updated_at": datetime.now(timezone.utc),
                }
            )

    async def list_users(self) -> list[User]:
        return sorted(self._users.values(), key=lambda u: u.created_at)

    async def delete_user(self, user_id: UUID) -> bool:
        async with self._lock:
            user = self._users.pop(user_id, None)
            if user is None:
                return False
            self._ids_by_username.pop(user.username, None)
            return True

    async def has_admin(self) -> bool:
        return self._admin_exists()

    def _admin_exists(self) -> bool:
        return any(u.role == Role.ADMIN for u in self._users.values())

    def _insert(self, user: User) -> None:
        if user.username in self._ids_by_username:
            raise UsernameTaken()
        self._users[user.id] = user
        self._ids_by_username[user.username] = user.id


class InMemoryClientRepository:
    """Dict-backed OAuth2 client registry."""

    def __init__(self):
        self._clients: dict[str, OAuthClient] = {}

    async def create_client(self, client: OAuthClient) -> None:
        self._clients[client.id] = client

    async def get_by_id(self, client_id: str) -> Optional[OAuthClient]:
        return self._clients.get(client_id)

    async def list_all(self) -> list[OAuthClient]:
        return sorted(self._clients.values(), key=lambda c: c.created_at)

    async def delete_by_id(self, client_id: str) -> bool:
        return self._clients.pop(client_id, None) is not None

    async def has_any_client(self) -> bool:
        return bool(self._clients)


class InMemoryTokenStore:
    """Token records indexed by access and refresh token."""

    def __init__(self):
        self._by_access: dict[str, TokenRecord] = {}
        self._by_refresh: dict[str, TokenRecord] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: TokenRecord) -> None:
        async with self._lock:
            self._by_access[record.access_token] = record
            self._by_refresh[record.refresh_token] = record

    async def get_by_access(self, access_token: str) -> Optional[TokenRecord]:
        return self._by_access.get(access_token)

    async def get_by_refresh(self, refresh_token: str) -> Optional[TokenRecord]:
        return self._by_refresh.get(refresh_token)

    async def remove_access(self, access_token: str) -> None:
        async with self._lock:
            self._by_access.pop(access_token, None)

    async def rotate(self, old: TokenRecord, new: TokenRecord) -> bool:
        async with self._lock:
            if self._by_refresh.pop(old.refresh_token, None) is None:
                return False
            self._by_access.pop(old.access_token, None)
            self._by_access[new.access_token] = new
            self._by_refresh[new.refresh_token] = new
        logger.debug("memory_token_rotated", client_id=new.client_id)
        return True
