"""Shared test fixtures and configuration."""

import os
import time
import uuid
from datetime import datetime, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

# No real Redis / worker during tests
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("WORKER_URL", "")

from painpoint.config import Settings  # noqa: E402
from painpoint.orchestrator.poller import ShortPoller  # noqa: E402
from painpoint.orchestrator.router import SearchOrchestrator  # noqa: E402
from painpoint.orchestrator.schemas import SearchRequest, SearchResult, SearchStatus  # noqa: E402
from painpoint.services.cache_store import CacheStore  # noqa: E402
from painpoint.services.rate_limiter import RateLimiter  # noqa: E402
from painpoint.services.result_cache import ResultCache  # noqa: E402
from painpoint.services.search_key import build_search_key  # noqa: E402
from painpoint.store import SearchStatusView  # noqa: E402


# ═══════════════ IN-MEMORY REDIS ═══════════════

class FakeRedis:
    """Just enough of redis.asyncio.Redis (decode_responses=True) for the cache store."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.down = False

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    def _purge(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass

    async def get(self, key):
        self._check()
        self._purge(key)
        return self.data.get(key)

    async def set(self, key, value, ex=None, nx=False):
        self._check()
        self._purge(key)
        if nx and key in self.data:
            return None
        self.data[key] = str(value)
        if ex:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self._purge(key)
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def incr(self, key):
        self._check()
        self._purge(key)
        try:
            value = int(self.data.get(key, "0")) + 1
        except ValueError:
            raise ResponseError("value is not an integer or out of range")
        self.data[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self._check()
        self._purge(key)
        if key not in self.data:
            return False
        self.expiry[key] = time.monotonic() + seconds
        return True

    async def ttl(self, key):
        self._check()
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expiry:
            return -1
        return max(0, int(round(self.expiry[key] - time.monotonic())))


# ═══════════════ IN-MEMORY STORE / TRIGGER ═══════════════

class FakeRepository:
    """Dict-backed stand-in for SearchRepository."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.assembled: dict[str, SearchResult] = {}
        self.inserts = 0
        self.status_reads = 0

    def add_row(self, request: SearchRequest, status=SearchStatus.PENDING, error_message=None) -> str:
        search_id = str(uuid.uuid4())
        self.rows[search_id] = {
            "status": status,
            "error_message": error_message,
            "search_key": build_search_key(request),
            "created_at": datetime.now(timezone.utc),
        }
        return search_id

    def set_status(self, search_id, status, error_message=None):
        self.rows[search_id]["status"] = status
        self.rows[search_id]["error_message"] = error_message

    def _view(self, search_id) -> SearchStatusView:
        row = self.rows[search_id]
        return SearchStatusView(
            search_id=search_id,
            status=row["status"],
            error_message=row["error_message"],
            search_key=row["search_key"],
        )

    async def insert_search(self, request, status=SearchStatus.PENDING, client_fingerprint=None):
        self.inserts += 1
        return self._view(self.add_row(request, status))

    async def get_search_status(self, search_id):
        self.status_reads += 1
        return self._view(search_id) if search_id in self.rows else None

    async def find_recent_search(self, request, statuses, within_seconds=7200):
        key = build_search_key(request)
        matches = [
            (row["created_at"], sid) for sid, row in self.rows.items()
            if row["search_key"] == key and row["status"] in statuses
        ]
        if not matches:
            return None
        return self._view(max(matches)[1])

    async def mark_processing(self, search_id):
        row = self.rows.get(search_id)
        if row is None or row["status"] is not SearchStatus.PENDING:
            return False
        row["status"] = SearchStatus.PROCESSING
        return True

    async def assemble_full_result(self, search_id):
        return self.assembled.get(search_id)


class FakeTrigger:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.calls: list[str] = []

    def trigger(self, search_id: str) -> bool:
        self.calls.append(search_id)
        return self.succeed


# ═══════════════ FIXTURES ═══════════════

@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return CacheStore(fake_redis)


@pytest.fixture
def result_cache(store):
    return ResultCache(store, ttl=7200)


@pytest.fixture
def limiter(store):
    return RateLimiter(store)


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def trigger():
    return FakeTrigger()


@pytest.fixture
def test_settings():
    return Settings(
        redis_url="",
        worker_url="",
        short_poll_max_wait_ms=60,
        short_poll_interval_ms=10,
        dedup_poll_max_wait_ms=30,
    )


@pytest.fixture
def orchestrator(limiter, result_cache, repository, trigger, test_settings):
    poller = ShortPoller(result_cache, repository, max_wait_ms=60, interval_ms=10)
    return SearchOrchestrator(
        limiter=limiter,
        result_cache=result_cache,
        repository=repository,
        job_trigger=trigger,
        poller=poller,
        settings=test_settings,
    )


@pytest.fixture
def sample_request():
    return SearchRequest(
        topic="database scalability",
        tags=["ask_hn"],
        time_range="month",
        min_upvotes=10,
        sort_by="relevance",
    )


def make_completed_result(search_id: str | None = None, topic: str = "database scalability") -> SearchResult:
    search_id = search_id or str(uuid.uuid4())
    pain_point_id = str(uuid.uuid4())
    return SearchResult.model_validate({
        "searchId": search_id,
        "status": "completed",
        "topic": topic,
        "tags": ["ask_hn"],
        "timeRange": "month",
        "minUpvotes": 10,
        "sortBy": "relevance",
        "totalMentions": 42,
        "totalPostsConsidered": 60,
        "totalCommentsConsidered": 380,
        "sourceTags": ["ask_hn"],
        "painPoints": [
            {
                "id": pain_point_id,
                "searchId": search_id,
                "title": "Sharding Postgres is painful",
                "sourceTag": "ask_hn",
                "mentionsCount": 12,
                "severityScore": 7.5,
            },
        ],
        "quotes": [
            {
                "id": str(uuid.uuid4()),
                "painPointId": pain_point_id,
                "quoteText": "We spent six months re-sharding.",
                "authorHandle": "pg_fan",
                "upvotes": 88,
                "permalink": "https://news.ycombinator.com/item?id=123",
            },
        ],
        "analysis": {
            "summary": "Operators struggle with horizontal scaling.",
            "problemClusters": [
                {
                    "title": "Sharding",
                    "description": "Manual shard management",
                    "severity": 8,
                    "mentionCount": 12,
                    "examples": ["re-sharding took months"],
                },
            ],
            "productIdeas": [
                {
                    "title": "Shard planner",
                    "description": "Simulates rebalancing",
                    "targetProblem": "Sharding",
                    "impactScore": 7,
                },
            ],
            "model": "gemini-2.5-flash",
            "tokensUsed": 5120,
        },
    })


@pytest.fixture
def completed_result():
    return make_completed_result()


@pytest.fixture
def result_factory():
    return make_completed_result
