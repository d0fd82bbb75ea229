"""PostgreSQL pool and schema migrations for users and OAuth2 clients."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from gatheryourdeals.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

POOL_MIN_SIZE = 2
POOL_MAX_SIZE = 10

# Serializes migration runs from concurrent `init`/`serve` processes.
MIGRATION_LOCK_ID = 0x67796431

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Return the shared pool.

    Raises:
        RuntimeError: If init_database() has not run
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the shared pool if it does not exist yet.

    Store calls time out after ``store_timeout_seconds``.
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()
    _pool = await asyncpg.create_pool(
        settings.postgres_url,
        min_size=POOL_MIN_SIZE,
        max_size=POOL_MAX_SIZE,
        command_timeout=settings.store_timeout_seconds,
    )
    logger.info(
        "database_pool_created",
        min_size=POOL_MIN_SIZE,
        max_size=POOL_MAX_SIZE,
        host=settings.postgres_url.split("@")[-1],
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


def migration_files() -> list[Path]:
    """SQL migrations in the order they are applied."""
    return sorted(MIGRATIONS_DIR.glob("*.sql"))


async def run_migrations() -> list[str]:
    """Apply every migration in one transaction under an advisory lock.

    Migration files are idempotent, so every run applies all of them.

    Returns:
        Names of the applied files

    Raises:
        asyncpg.PostgresError: If a migration fails; nothing is committed
    """
    files = migration_files()
    pool = await get_pool()

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATION_LOCK_ID)
            for path in files:
                try:
                    await conn.execute(path.read_text())
                except asyncpg.PostgresError as e:
                    logger.error("migration_failed", file=path.name, error=str(e))
                    raise

    applied = [path.name for path in files]
    logger.info("migrations_applied", files=applied)
    return applied


async def health_check() -> bool:
    """Report whether the database answers a trivial query."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (asyncpg.PostgresError, OSError, RuntimeError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
