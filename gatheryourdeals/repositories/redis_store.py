"""Redis-backed token store.

Each pair is stored twice, under ``oauth:access:<token>`` and
``oauth:refresh:<token>``, as the JSON-encoded TokenRecord with a PX expiry
equal to the remaining lifetime of that half. Writes that touch more than one
key run as Lua scripts so they are atomic on the server.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from gatheryourdeals.models.token import TokenRecord
from gatheryourdeals.services.redis_service import get_redis

ACCESS_PREFIX = "oauth:access:"
REFRESH_PREFIX = "oauth:refresh:"

# KEYS: access key, refresh key
# ARGV: record json, access ttl ms, refresh ttl ms
SAVE_SCRIPT = """
redis.call('SET', KEYS[1], ARGV[1], 'PX', ARGV[2])
redis.call('SET', KEYS[2], ARGV[1], 'PX', ARGV[3])
return 1
"""

# KEYS: old refresh key, old access key, new access key, new refresh key
# ARGV: new record json, access ttl ms, refresh ttl ms
ROTATE_SCRIPT = """
if redis.call('DEL', KEYS[1]) == 0 then
    return 0
end
redis.call('DEL', KEYS[2])
redis.call('SET', KEYS[3], ARGV[1], 'PX', ARGV[2])
redis.call('SET', KEYS[4], ARGV[1], 'PX', ARGV[3])
return 1
"""


def access_key(token: str) -> str:
    return f"{ACCESS_PREFIX}{token}"


def refresh_key(token: str) -> str:
    return f"{REFRESH_PREFIX}{token}"


def _ttl_ms(expires_at: datetime) -> int:
    remaining = (expires_at - datetime.now(timezone.utc)).total_seconds()
    return max(1, math.ceil(remaining * 1000))


class RedisTokenStore:
    """Token persistence in Redis with server-side expiry."""

    async def save(self, record: TokenRecord) -> None:
        client = await get_redis()
        await client.eval(
            SAVE_SCRIPT,
            2,
            access_key(record.access_token),
            refresh_key(record.refresh_token),
            record.model_dump_json(),
            _ttl_ms(record.access_expires_at),
            _ttl_ms(record.refresh_expires_at),
        )

    async def get_by_access(self, access_token: str) -> Optional[TokenRecord]:
        return await self._load(access_key(access_token))

    async def get_by_refresh(self, refresh_token: str) -> Optional[TokenRecord]:
        return await self._load(refresh_key(refresh_token))

    async def remove_access(self, access_token: str) -> None:
        client = await get_redis()
        await client.delete(access_key(access_token))

    async def rotate(self, old: TokenRecord, new: TokenRecord) -> bool:
        client = await get_redis()
        rotated = await client.eval(
            ROTATE_SCRIPT,
            4,
            refresh_key(old.refresh_token),
            access_key(old.access_token),
            access_key(new.access_token),
            refresh_key(new.refresh_token),
            new.model_dump_json(),
            _ttl_ms(new.access_expires_at),
            _ttl_ms(new.refresh_expires_at),
        )
        return int(rotated) == 1

    async def _load(self, key: str) -> Optional[TokenRecord]:
        client = await get_redis()
        data = await client.get(key)
        if data is None:
            return None
        return TokenRecord.model_validate_json(data)
