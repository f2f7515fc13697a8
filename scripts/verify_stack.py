#!/usr/bin/env python3
"""Live stack verification script — run against real Redis / Postgres / worker.

Usage:
  1. Fill in REDIS_URL, DATABASE_URL and WORKER_URL in .env
  2. Run: python scripts/verify_stack.py

Steps:
  Step 1: Verify .env configuration
  Step 2: Redis round trip (cache store + rate limiter)
  Step 3: Database connectivity and schema
  Step 4: Worker endpoint reachability (no job is started)
"""

import asyncio
import os
import sys
import uuid

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def step_header(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}\n")


def ok(msg: str) -> None:
    print(f"  ✅ {msg}")


def fail(msg: str) -> None:
    print(f"  ❌ {msg}")


def info(msg: str) -> None:
    print(f"  ℹ️  {msg}")


async def step1_verify_env():
    step_header(1, "Verify .env Configuration")
    from painpoint.config import settings

    passed = True
    if settings.has_redis:
        ok(f"REDIS_URL: set ({settings.redis_url.split('@')[-1]})")
    else:
        fail("REDIS_URL: NOT SET — every search will be rate-limited (fail closed)!")
        passed = False

    ok(f"DATABASE_URL: {settings.database_url.split('@')[-1]}")

    if settings.has_worker:
        ok(f"WORKER_URL: {settings.worker_url}")
    else:
        fail("WORKER_URL: NOT SET — searches will stay pending")
        passed = False

    if not settings.worker_token:
        info("WORKER_TOKEN: not set (worker calls go out unauthenticated)")

    info(
        f"Rate limits: global {settings.rate_limit_global_max}/{settings.rate_limit_global_window_seconds}s, "
        f"ip {settings.rate_limit_ip_max}/{settings.rate_limit_ip_window_seconds}s, "
        f"daily {settings.rate_limit_ip_daily_max}/{settings.rate_limit_ip_daily_window_seconds}s, "
        f"topic {settings.rate_limit_topic_max}/{settings.rate_limit_topic_window_seconds}s"
    )
    return passed


async def step2_redis():
    step_header(2, "Redis Round Trip")
    from painpoint.config import settings
    from painpoint.services.cache_store import CacheStore
    from painpoint.services.rate_limiter import RateLimiter

    store = CacheStore.from_url(settings.redis_url, settings.redis_connect_timeout_seconds)
    try:
        if not await store.ping():
            fail("PING failed")
            return False
        ok("PING")

        ident = f"verify:{uuid.uuid4()}"
        limiter = RateLimiter(store)
        first = await limiter.apply(ident, 2, 30, prefix="verify:rate")
        second = await limiter.apply(ident, 2, 30, prefix="verify:rate")
        third = await limiter.apply(ident, 2, 30, prefix="verify:rate")
        await store.delete(f"verify:rate:{ident}")

        if (first.allowed, second.allowed, third.allowed) != (True, True, False):
            fail(f"Rate limiter window wrong: {first.total_hits}/{second.total_hits}/{third.total_hits}")
            return False
        ok("Rate limiter: 2 allowed, 3rd denied")
        return True
    finally:
        await store.aclose()


async def step3_database():
    step_header(3, "Database")
    from painpoint.config import settings
    from painpoint.database import build_engine, close_db, init_db, ping_db

    engine = build_engine(settings.database_url)
    try:
        if not await ping_db(engine):
            fail("SELECT 1 failed")
            return False
        ok("SELECT 1")

        if not await init_db(engine):
            fail("Schema creation failed")
            return False
        ok("Tables present: searches, search_results, pain_points, pain_point_quotes, ai_analyses")
        return True
    finally:
        await close_db(engine)


async def step4_worker():
    step_header(4, "Worker Endpoint")
    from painpoint.config import settings

    if not settings.has_worker:
        info("Skipped (WORKER_URL not set)")
        return False

    # OPTIONS does not start a job
    try:
        async with httpx.AsyncClient(timeout=settings.job_trigger_timeout_seconds) as client:
            resp = await client.options(settings.worker_url)
    except httpx.HTTPError as e:
        fail(f"Worker unreachable: {str(e)[:200]}")
        return False

    ok(f"Worker reachable (HTTP {resp.status_code})")
    return True


async def main():
    print("\n🔍 Painpoint Stack Verification\n")

    results = {
        1: await step1_verify_env(),
        2: await step2_redis(),
        3: await step3_database(),
        4: await step4_worker(),
    }

    # Summary
    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    for step_n, passed in sorted(results.items()):
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  Step {step_n}: {status}")

    total_passed = sum(1 for v in results.values() if v)
    total = len(results)
    print(f"\n  {total_passed}/{total} steps passed")
    print(f"{'='*60}\n")

    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    asyncio.run(main())
