"""Shared Redis client for the token store."""

from typing import Optional

import redis.asyncio as redis
import structlog

from gatheryourdeals.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis client
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis client.

    Returns:
        Connected Redis client

    Raises:
        redis.RedisError: If Redis cannot be reached. Tokens cannot be
            validated without it, so there is no degraded mode.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()

    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.store_timeout_seconds,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("redis_connection_failed", error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url.split("@")[-1])
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_connection_closed")
