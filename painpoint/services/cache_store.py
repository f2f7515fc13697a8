"""Cache store — single-round-trip key/value primitives over Redis.

Every operation returns a CacheReply instead of raising, so callers treat
"store unavailable" as an ordinary outcome. A store built without a Redis
URL is unconfigured and reports every operation as failed.
"""

import logging
from dataclasses import dataclass
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Redis not configured"


@dataclass(frozen=True)
class CacheReply:
    """Outcome of one cache command: a value, or an error description."""

    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CacheStore:
    """Async Redis primitives: GET, SET, SET NX, DEL, INCR, EXPIRE, TTL."""

    def __init__(self, client: aioredis.Redis | None = None):
        self._redis = client
        if client is None:
            logger.warning("Cache store unconfigured — every cache operation will fail")

    @classmethod
    def from_url(cls, url: str, connect_timeout: float = 3.0) -> "CacheStore":
        """Build a store for a Redis URL. An empty URL yields an unconfigured store."""
        if not url:
            return cls(None)
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=connect_timeout,
            socket_timeout=connect_timeout,
        )
        return cls(client)

    @property
    def configured(self) -> bool:
        return self._redis is not None

    async def ping(self) -> bool:
        reply = await self._call("PING", lambda r: r.ping())
        return reply.ok and bool(reply.value)

    async def aclose(self):
        """Close the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> CacheReply:
        return await self._call("GET", lambda r: r.get(key), key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> CacheReply:
        """SET with an optional TTL. Value is True when Redis acknowledged the write."""
        ex = ttl if ttl and ttl > 0 else None
        reply = await self._call("SET", lambda r: r.set(key, value, ex=ex), key)
        return CacheReply(value=bool(reply.value), error=reply.error)

    async def set_nx(self, key: str, value: str, ttl: int) -> CacheReply:
        """Atomic SET NX EX. Value is True only if this call created the key."""
        reply = await self._call("SETNX", lambda r: r.set(key, value, nx=True, ex=ttl), key)
        return CacheReply(value=bool(reply.value), error=reply.error)

    async def delete(self, key: str) -> CacheReply:
        reply = await self._call("DEL", lambda r: r.delete(key), key)
        return CacheReply(value=reply.value if isinstance(reply.value, int) else 0, error=reply.error)

    async def incr(self, key: str) -> CacheReply:
        reply = await self._call("INCR", lambda r: r.incr(key), key)
        if reply.ok and not isinstance(reply.value, int):
            return CacheReply(error=f"non-numeric INCR result: {reply.value!r}")
        return reply

    async def expire(self, key: str, seconds: int) -> CacheReply:
        reply = await self._call("EXPIRE", lambda r: r.expire(key, seconds), key)
        return CacheReply(value=bool(reply.value), error=reply.error)

    async def ttl(self, key: str) -> CacheReply:
        """TTL in seconds; -1 when the key has none, -2 when missing or on error."""
        reply = await self._call("TTL", lambda r: r.ttl(key), key)
        if not reply.ok or not isinstance(reply.value, int):
            return CacheReply(value=-2, error=reply.error or "non-numeric TTL result")
        return reply

    async def _call(self, command: str, op, key: str = "") -> CacheReply:
        if self._redis is None:
            return CacheReply(error=NOT_CONFIGURED)
        try:
            return CacheReply(value=await op(self._redis))
        except (RedisError, OSError) as e:
            logger.warning("Redis %s failed | key=%s | %s", command, key[:80], str(e)[:200])
            return CacheReply(error=str(e)[:200] or type(e).__name__)
