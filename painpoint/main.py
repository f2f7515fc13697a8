"""Painpoint backend — FastAPI application entry point.

Provides /api/search (submit) and /api/search-status (poll) endpoints.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from painpoint.config import settings
from painpoint.database import build_engine, build_session_factory, close_db, init_db, ping_db
from painpoint.errors import ErrorCode, RateLimitExceeded, SearchError
from painpoint.orchestrator.router import SearchOrchestrator
from painpoint.orchestrator.schemas import SearchAccepted, SearchRequest, SearchResult, SearchStatus
from painpoint.services.cache_store import CacheStore
from painpoint.services.job_trigger import JobTrigger
from painpoint.services.rate_limiter import RateLimiter
from painpoint.services.result_cache import ResultCache
from painpoint.store import SearchRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("painpoint")


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Painpoint backend starting | redis=%s | worker=%s", settings.has_redis, settings.has_worker)

    engine = build_engine(settings.database_url)
    db_ok = await init_db(engine)
    logger.info("Database: %s", "connected" if db_ok else "unavailable")

    store = CacheStore.from_url(settings.redis_url, settings.redis_connect_timeout_seconds)
    redis_ok = await store.ping()
    logger.info("Redis: %s", "connected" if redis_ok else "unavailable (rate limits fail closed)")

    trigger = JobTrigger(
        settings.worker_url,
        token=settings.worker_token,
        timeout=settings.job_trigger_timeout_seconds,
    )

    app.state.engine = engine
    app.state.cache_store = store
    app.state.job_trigger = trigger
    app.state.orchestrator = SearchOrchestrator(
        limiter=RateLimiter(store),
        result_cache=ResultCache(store, settings.cache_ttl_seconds),
        repository=SearchRepository(build_session_factory(engine)),
        job_trigger=trigger,
    )

    yield

    await trigger.aclose()
    await store.aclose()
    await close_db(engine)
    logger.info("Painpoint backend shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="Painpoint API",
    description="Pain-point search orchestration API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["Content-Type"],
)


# ═══════════════ HELPERS ═══════════════

def client_ip(request: Request) -> str:
    """Best-effort client IP behind proxies."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header, "").strip()
        if value:
            return value
    return request.client.host if request.client else "unknown"


def error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    headers: dict[str, str] | None = None,
    **extra,
) -> JSONResponse:
    content = {"error": message, "code": code.value, **extra}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def result_response(
    body: SearchResult | SearchAccepted,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    if isinstance(body, SearchAccepted):
        return JSONResponse(status_code=202, content=body.to_wire(), headers=headers)
    if body.status is SearchStatus.FAILED:
        return JSONResponse(
            status_code=200,
            content={
                "searchId": body.search_id,
                "status": body.status.value,
                "error": body.error_message or "Search failed",
                "code": ErrorCode.SEARCH_FAILED.value,
            },
            headers=headers,
        )
    return JSONResponse(status_code=200, content=body.to_wire(), headers=headers)


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health(request: Request):
    store: CacheStore | None = getattr(request.app.state, "cache_store", None)
    engine = getattr(request.app.state, "engine", None)
    checks = {
        "redis": bool(store and await store.ping()),
        "database": bool(engine is not None and await ping_db(engine)),
    }
    # Without the cache every search is refused by the rate limiter
    if not all(checks.values()):
        logger.warning("Health degraded | redis=%s | database=%s", checks["redis"], checks["database"])
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "code": ErrorCode.SERVICE_UNAVAILABLE.value, **checks},
        )
    return {"status": "ok", **checks}


@app.post("/api/search")
async def search(request: Request):
    """Submit a search: completed result (200) or processing acknowledgment (202)."""
    try:
        body = await request.json()
    except Exception:
        return error_response(ErrorCode.BAD_REQUEST, "Invalid JSON body", 400)

    try:
        search_req = SearchRequest.model_validate(body)
    except ValidationError as e:
        issues = {".".join(str(p) for p in err["loc"]) or "body": err["msg"] for err in e.errors()}
        return error_response(
            ErrorCode.VALIDATION_ERROR, "Invalid request payload", 400, issues=issues,
        )

    orchestrator: SearchOrchestrator = request.app.state.orchestrator
    ip = client_ip(request)
    start = time.monotonic()
    try:
        outcome = await orchestrator.submit(search_req, client_ip=ip)
    except RateLimitExceeded as e:
        return error_response(e.code, e.message, e.status_code, headers=e.response_headers())
    except SearchError as e:
        logger.error("Search failed | %s | %s", e.code.value, e.message)
        return error_response(e.code, e.message, e.status_code)
    except Exception as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.exception("Search crashed | %dms | %s", elapsed_ms, str(e)[:300])
        return error_response(ErrorCode.INTERNAL_ERROR, "Internal server error", 500)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Search handled | id=%s | status=%s | %dms",
        outcome.body.search_id, outcome.body.status.value, elapsed_ms,
    )
    return result_response(outcome.body, outcome.headers)


@app.get("/api/search-status")
async def search_status(request: Request, searchId: str | None = None):
    """Check a search by id without resubmitting it."""
    if not searchId:
        return error_response(
            ErrorCode.BAD_REQUEST, "Missing required query parameter: searchId", 400,
        )

    orchestrator: SearchOrchestrator = request.app.state.orchestrator
    try:
        body = await orchestrator.poll_status(searchId)
    except SearchError as e:
        if e.status_code >= 500:
            logger.error("Status check failed | id=%s | %s", searchId, e.message)
        return error_response(e.code, e.message, e.status_code)
    except Exception as e:
        logger.exception("Status check crashed | id=%s | %s", searchId, str(e)[:300])
        return error_response(ErrorCode.INTERNAL_ERROR, "Internal server error", 500)

    return result_response(body)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("painpoint.main:app", host=settings.host, port=settings.port)
