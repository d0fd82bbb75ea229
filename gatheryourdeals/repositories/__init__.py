"""Storage interfaces consumed by the auth core.

Backends implement these protocols: :mod:`.memory` for tests and local
development, :mod:`.postgres` for users and clients, :mod:`.redis_store` for
tokens. Lookups return ``None`` for "not found"; anything raised is a store
failure and propagates to the caller.
"""

from typing import Optional, Protocol
from uuid import UUID

from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.models.user import User


class UserRepository(Protocol):
    """Persistent store of user accounts."""

    async def create_user(self, user: User) -> None:
        """Insert a user. Raises ``UsernameTaken`` on a uniqueness violation."""
        ...

    async def create_admin(self, user: User) -> None:
        """Insert ``user`` only if no admin exists, as one atomic step.

        Raises ``AdminAlreadyExists`` if an admin is already present and
        ``UsernameTaken`` on a uniqueness violation.
        """
        ...

    async def get_by_id(self, user_id: UUID) -> Optional[User]: ...

    async def get_by_username(self, username: str) -> Optional[User]: ...

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...

    async def list_users(self) -> list[User]: ...

    async def delete_user(self, user_id: UUID) -> bool: ...

    async def has_admin(self) -> bool: ...


class ClientRepository(Protocol):
    """Persistent store of registered OAuth2 clients."""

    async def create_client(self, client: OAuthClient) -> None: ...

    async def get_by_id(self, client_id: str) -> Optional[OAuthClient]: ...

    async def list_all(self) -> list[OAuthClient]: ...

    async def delete_by_id(self, client_id: str) -> bool: ...

    async def has_any_client(self) -> bool: ...


class TokenStore(Protocol):
    """Persistence for token pairs with expiry."""

    async def save(self, record: TokenRecord) -> None:
        """Persist both halves of the pair in one atomic write."""
        ...

    async def get_by_access(self, access_token: str) -> Optional[TokenRecord]: ...

    async def get_by_refresh(self, refresh_token: str) -> Optional[TokenRecord]: ...

    async def remove_access(self, access_token: str) -> None: ...

    async def rotate(self, old: TokenRecord, new: TokenRecord) -> bool:
        """Invalidate ``old`` and store ``new`` atomically.

        Returns False without writing anything when ``old.refresh_token`` is
        no longer present, so at most one concurrent rotation wins.
        """
        ...


__all__ = ["ClientRepository", "TokenStore", "UserRepository"]
