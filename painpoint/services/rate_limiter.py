"""Fixed-window rate limiter on top of the cache store.

Flow for key `{prefix}:{identifier}`:
  1. SET key 1 NX EX window — success means first hit of the window
  2. Otherwise INCR; re-arm the TTL if the counter somehow has none
  3. Compare the count with the quota

Fail-closed: if the store is unavailable or returns a non-numeric count the
request is denied. Under an outage we prefer refusing traffic to letting an
unbounded burst through to the analysis worker.
"""

import logging
import math
import time

from pydantic import BaseModel

from painpoint.services.cache_store import CacheStore
from painpoint.services.search_key import rate_limit_key

logger = logging.getLogger(__name__)


class RateLimitResult(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    total_hits: int
    reset_at: float  # epoch seconds

    def retry_after(self, now: float | None = None, round_up: bool = False) -> int:
        """Seconds until the window resets, never below 1."""
        delta = self.reset_at - (now if now is not None else time.time())
        return max(1, math.ceil(delta) if round_up else round(delta))


class RateLimiter:
    """Fixed-window counters. Each (prefix, window, quota) is an independent limit."""

    def __init__(self, store: CacheStore):
        self.store = store

    async def apply(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int,
        prefix: str = "rate",
    ) -> RateLimitResult:
        key = rate_limit_key(prefix, identifier)

        first = await self.store.set_nx(key, "1", window_seconds)
        if first.ok and first.value:
            return RateLimitResult(
                allowed=max_requests >= 1,
                limit=max_requests,
                remaining=max(0, max_requests - 1),
                total_hits=1,
                reset_at=time.time() + window_seconds,
            )

        incr = await self.store.incr(key)
        if not incr.ok:
            logger.error("Rate limit INCR failed — denying | key=%s | %s", key[:80], incr.error)
            return RateLimitResult(
                allowed=False,
                limit=max_requests,
                remaining=0,
                total_hits=max_requests + 1,
                reset_at=time.time() + window_seconds,
            )
        count = incr.value

        # INCR on an expired key creates it without a TTL
        ttl = (await self.store.ttl(key)).value
        if ttl == -1:
            expired = await self.store.expire(key, window_seconds)
            if not expired.ok:
                logger.warning("Rate limit EXPIRE failed | key=%s | %s", key[:80], expired.error)

        effective_ttl = ttl if ttl > 0 else window_seconds
        allowed = count <= max_requests
        if not allowed:
            logger.info("Rate limit hit | key=%s | hits=%d | max=%d", key[:80], count, max_requests)

        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            total_hits=count,
            reset_at=time.time() + effective_ttl,
        )


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }


def is_approaching_limit(result: RateLimitResult) -> bool:
    """True when at most 20% of the window's requests remain."""
    return result.remaining <= result.limit * 0.2
