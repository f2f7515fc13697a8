"""Search rate limits — four independent fixed windows, checked in order.

global → per-IP (minute) → per-IP (day) → per logical request (search key).
The first denial stops the chain; later windows are not charged.
"""

import hashlib
import logging
import time

from painpoint.config import Settings, settings as default_settings
from painpoint.errors import RateLimitExceeded
from painpoint.services.rate_limiter import RateLimiter, is_approaching_limit, rate_limit_headers
from painpoint.services.search_key import (
    RATE_LIMIT_GLOBAL_PREFIX,
    RATE_LIMIT_IP_DAILY_PREFIX,
    RATE_LIMIT_IP_PREFIX,
    RATE_LIMIT_TOPIC_PREFIX,
)

logger = logging.getLogger(__name__)


def actor_id(client_ip: str) -> str:
    """Stable, non-reversible identifier for a client IP."""
    return hashlib.sha256((client_ip or "unknown").encode()).hexdigest()


async def enforce_search_rate_limits(
    limiter: RateLimiter,
    actor: str,
    search_key: str,
    settings: Settings | None = None,
) -> dict[str, str]:
    """Charge every window; raise RateLimitExceeded on the first denial.

    Returns the per-IP rate-limit headers for a successful response.
    """
    cfg = settings or default_settings

    global_limit = await limiter.apply(
        "all", cfg.rate_limit_global_max, cfg.rate_limit_global_window_seconds,
        prefix=RATE_LIMIT_GLOBAL_PREFIX,
    )
    if not global_limit.allowed:
        logger.warning("Global rate limit exceeded | hits=%d", global_limit.total_hits)
        raise RateLimitExceeded(
            "global",
            global_limit.retry_after(time.time()),
            {"X-RateLimit-Global-Remaining": "0"},
        )

    ip_limit = await limiter.apply(
        actor, cfg.rate_limit_ip_max, cfg.rate_limit_ip_window_seconds,
        prefix=RATE_LIMIT_IP_PREFIX,
    )
    ip_headers = rate_limit_headers(ip_limit)
    if not ip_limit.allowed:
        logger.warning("IP rate limit exceeded | actor=%s | hits=%d", actor[:12], ip_limit.total_hits)
        raise RateLimitExceeded("ip", ip_limit.retry_after(time.time()), ip_headers)
    if is_approaching_limit(ip_limit):
        logger.info(
            "IP approaching rate limit | actor=%s | remaining=%d/%d",
            actor[:12], ip_limit.remaining, ip_limit.limit,
        )

    daily_limit = await limiter.apply(
        actor, cfg.rate_limit_ip_daily_max, cfg.rate_limit_ip_daily_window_seconds,
        prefix=RATE_LIMIT_IP_DAILY_PREFIX,
    )
    if not daily_limit.allowed:
        logger.warning("Daily rate limit exceeded | actor=%s | hits=%d", actor[:12], daily_limit.total_hits)
        raise RateLimitExceeded(
            "ip_daily",
            daily_limit.retry_after(time.time(), round_up=True),
            {**ip_headers, "X-RateLimit-Daily-Remaining": "0"},
        )
    if is_approaching_limit(daily_limit):
        logger.info(
            "Daily rate limit nearly used | actor=%s | remaining=%d/%d",
            actor[:12], daily_limit.remaining, daily_limit.limit,
        )

    topic_limit = await limiter.apply(
        search_key, cfg.rate_limit_topic_max, cfg.rate_limit_topic_window_seconds,
        prefix=RATE_LIMIT_TOPIC_PREFIX,
    )
    if not topic_limit.allowed:
        logger.warning("Topic rate limit exceeded | key=%s | hits=%d", search_key[:80], topic_limit.total_hits)
        raise RateLimitExceeded(
            "topic",
            topic_limit.retry_after(time.time()),
            {**ip_headers, "X-RateLimit-Remaining-Topic": str(topic_limit.remaining)},
        )

    return ip_headers
