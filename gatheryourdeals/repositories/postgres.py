"""PostgreSQL-backed user and client repositories (asyncpg)."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import asyncpg
import structlog

from gatheryourdeals.database import get_pool
from gatheryourdeals.errors import (
    AdminAlreadyExists,
    ClientAlreadyExists,
    UsernameTaken,
)
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.models.user import Role, User

logger = structlog.get_logger(__name__)

# Column lists must match the row mappers below.
USER_COLUMNS = "id, username, password_hash, role, created_at, updated_at"
CLIENT_COLUMNS = "id, secret, domain, created_at"

# Serializes admin bootstrap across processes; distinct from the migration lock.
ADMIN_BOOTSTRAP_LOCK_ID = 0x67796432


def _user_from_row(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _insert_user(conn, user: User) -> None:
    try:
        await conn.execute(
            f"""
            INSERT INTO users ({USER_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            user.id,
            user.username,
            user.password_hash,
            user.role.value,
            user.created_at,
            user.updated_at,
        )
    except asyncpg.UniqueViolationError as e:
        raise UsernameTaken() from e


def _client_from_row(row) -> OAuthClient:
    return OAuthClient(
        id=row["id"],
        secret=row["secret"],
        domain=row["domain"],
        created_at=row["created_at"],
    )


class PostgresUserRepository:
    """User accounts stored in the ``users`` table."""

    async def create_user(self, user: User) -> None:
        """Insert a user.

        Raises:
            UsernameTaken: If the username unique constraint is violated
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            await _insert_user(conn, user)

        logger.debug("user_row_inserted", user_id=str(user.id))

    async def create_admin(self, user: User) -> None:
        """Insert the first admin account.

        Concurrent bootstraps queue on a transaction-scoped advisory lock, so
        only the first one sees an empty admin set and inserts.

        Raises:
            AdminAlreadyExists: If an admin-role user already exists
            UsernameTaken: If the username unique constraint is violated
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    "SELECT pg_advisory_xact_lock($1)", ADMIN_BOOTSTRAP_LOCK_ID
                )
                if await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM users WHERE role = $1)",
                    Role.ADMIN.value,
                ):
                    raise AdminAlreadyExists()
                await _insert_user(conn, user)

        logger.debug("admin_row_inserted", user_id=str(user.id))

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        return _user_from_row(row) if row is not None else None

    async def get_by_username(self, username: str) -> Optional[User]:
        """Get a user by exact (case-sensitive) username."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE username = $1",
                username,
            )

        return _user_from_row(row) if row is not None else None

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

    async def list_users(self) -> list[User]:
        """Return all users ordered by creation date."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at ASC"
            )

        return [_user_from_row(row) for row in rows]

    async def delete_user(self, user_id: UUID) -> bool:
        """Hard-delete a user.

        Returns:
            True if the user was deleted, False if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)

        deleted = result == "DELETE 1"

        if deleted:
            logger.info("user_deleted", user_id=str(user_id))
        else:
            logger.warning("user_delete_not_found", user_id=str(user_id))

        return deleted

    async def has_admin(self) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM users WHERE role = $1)",
                Role.ADMIN.value,
            )


class PostgresClientRepository:
    """OAuth2 clients stored in the ``oauth_clients`` table."""

    async def create_client(self, client: OAuthClient) -> None:
        """Insert a client.

        Raises:
            ClientAlreadyExists: If the client ID is already registered
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            try:
                await conn.execute(
                    f"""
                    INSERT INTO oauth_clients ({CLIENT_COLUMNS})
                    VALUES ($1, $2, $3, $4)
                    """,
                    client.id,
                    client.secret,
                    client.domain,
                    client.created_at,
                )
            except asyncpg.UniqueViolationError as e:
                raise ClientAlreadyExists() from e

    async def get_by_id(self, client_id: str) -> Optional[OAuthClient]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {CLIENT_COLUMNS} FROM oauth_clients WHERE id = $1",
                client_id,
            )

        return _client_from_row(row) if row is not None else None

    async def list_all(self) -> list[OAuthClient]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {CLIENT_COLUMNS} FROM oauth_clients ORDER BY created_at ASC"
            )

        return [_client_from_row(row) for row in rows]

    async def delete_by_id(self, client_id: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM oauth_clients WHERE id = $1", client_id
            )

        return result == "DELETE 1"

    async def has_any_client(self) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT EXISTS (SELECT 1 FROM oauth_clients)")
