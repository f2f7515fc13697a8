"""Orchestrator — the request entry point for submitting and checking searches.

Responsibilities:
  - Enforce rate limits before any side effect
  - Serve completed results from the result cache by search key
  - Reuse an in-flight or recent search instead of creating a new row
  - Create the search row, trigger the worker, short-poll for the result
  - Answer out-of-band status checks by search id
"""

import logging
import uuid
from dataclasses import dataclass, field

from painpoint.config import Settings, settings as default_settings
from painpoint.errors import InvalidSearchId, SearchNotFound, StoreUnavailable
from painpoint.orchestrator.poller import ShortPoller
from painpoint.orchestrator.rate_limits import actor_id, enforce_search_rate_limits
from painpoint.orchestrator.schemas import SearchAccepted, SearchRequest, SearchResult, SearchStatus
from painpoint.services.job_trigger import JobTrigger
from painpoint.services.rate_limiter import RateLimiter
from painpoint.services.result_cache import ResultCache
from painpoint.services.search_key import build_search_key
from painpoint.store import SearchRepository, SearchStatusView

logger = logging.getLogger(__name__)

REUSABLE_STATUSES = [SearchStatus.PENDING, SearchStatus.PROCESSING, SearchStatus.COMPLETED]


@dataclass
class SearchOutcome:
    """What a submission produced, plus headers for the HTTP response."""

    body: SearchResult | SearchAccepted
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        return isinstance(self.body, SearchResult)


class SearchOrchestrator:
    """Composes rate limits, cache, store, job trigger and short-poll."""

    def __init__(
        self,
        limiter: RateLimiter,
        result_cache: ResultCache,
        repository: SearchRepository,
        job_trigger: JobTrigger,
        poller: ShortPoller | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.limiter = limiter
        self.result_cache = result_cache
        self.repository = repository
        self.job_trigger = job_trigger
        self.poller = poller or ShortPoller(
            result_cache,
            repository,
            max_wait_ms=self.settings.short_poll_max_wait_ms,
            interval_ms=self.settings.short_poll_interval_ms,
        )

    async def submit(self, request: SearchRequest, client_ip: str = "unknown") -> SearchOutcome:
        search_key = build_search_key(request)
        actor = actor_id(client_ip)

        headers = await enforce_search_rate_limits(self.limiter, actor, search_key, self.settings)

        cached = await self.result_cache.get_by_key(search_key)
        if cached is not None and cached.status is SearchStatus.COMPLETED:
            logger.info("Submit served from cache | id=%s", cached.search_id)
            return SearchOutcome(cached, headers)

        existing = await self._find_existing(request, search_key)
        if existing is not None:
            reused = await self._reuse(existing, search_key)
            if reused is not None:
                return SearchOutcome(reused, headers)

        return SearchOutcome(await self._create_and_wait(request, search_key, actor), headers)

    async def poll_status(self, search_id: str) -> SearchResult | SearchAccepted:
        """Out-of-band status check for a known search id."""
        if not _is_uuid(search_id):
            raise InvalidSearchId("Invalid searchId")

        cached = await self.result_cache.get_by_id(search_id)
        if cached is not None:
            logger.info("Status served from cache | id=%s", search_id)
            return cached

        row = await self.repository.get_search_status(search_id)
        if row is None:
            raise SearchNotFound()

        match row.status:
            case SearchStatus.COMPLETED:
                assembled = await self.repository.assemble_full_result(search_id)
                if assembled is None:
                    logger.error("Completed search could not be assembled | id=%s", search_id)
                    raise StoreUnavailable("Failed to load search results")
                await self.result_cache.set(search_id, row.search_key, assembled)
                return assembled
            case SearchStatus.FAILED:
                return SearchResult.failed(search_id, row.error_message or "Search failed")
            case SearchStatus.PENDING | SearchStatus.PROCESSING:
                return SearchAccepted(search_id=search_id, status=row.status)

    async def _find_existing(self, request: SearchRequest, search_key: str) -> SearchStatusView | None:
        mapped_id = await self.result_cache.get_search_id_for_key(search_key)
        if mapped_id and _is_uuid(mapped_id):
            row = await self.repository.get_search_status(mapped_id)
            if row is not None and row.status in REUSABLE_STATUSES and row.search_key in (None, search_key):
                logger.info("Dedup hit (key mapping) | id=%s | status=%s", row.search_id, row.status.value)
                return row

        row = await self.repository.find_recent_search(
            request, REUSABLE_STATUSES, within_seconds=self.settings.dedup_window_seconds,
        )
        if row is not None:
            logger.info("Dedup hit (store) | id=%s | status=%s", row.search_id, row.status.value)
        return row

    async def _reuse(self, row: SearchStatusView, search_key: str) -> SearchResult | SearchAccepted | None:
        cached = await self.result_cache.get_by_id(row.search_id)
        if cached is not None and cached.status is SearchStatus.COMPLETED:
            return cached

        match row.status:
            case SearchStatus.PENDING | SearchStatus.PROCESSING:
                status = await self._dispatch(row.search_id, row.status)
                return SearchAccepted(search_id=row.search_id, status=status)
            case SearchStatus.COMPLETED:
                result = await self.poller.poll(row.search_id, max_wait_ms=self.settings.dedup_poll_max_wait_ms)
                if result is not None and result.status is SearchStatus.COMPLETED:
                    await self.result_cache.set(row.search_id, search_key, result)
                    return result
                logger.warning("Completed search not assembled — starting fresh | id=%s", row.search_id)
                return None
            case SearchStatus.FAILED:
                return None

    async def _create_and_wait(
        self,
        request: SearchRequest,
        search_key: str,
        actor: str,
    ) -> SearchResult | SearchAccepted:
        row = await self.repository.insert_search(
            request, status=SearchStatus.PENDING, client_fingerprint=actor,
        )
        await self.result_cache.set_search_id_for_key(search_key, row.search_id)

        status = await self._dispatch(row.search_id, row.status)

        result = await self.poller.poll(row.search_id)
        if result is not None:
            match result.status:
                case SearchStatus.COMPLETED:
                    return result
                case SearchStatus.FAILED:
                    return SearchResult.failed(row.search_id, result.error_message, request)
                case SearchStatus.PENDING | SearchStatus.PROCESSING:
                    status = result.status

        return SearchAccepted(search_id=row.search_id, status=status)

    async def _dispatch(self, search_id: str, status: SearchStatus) -> SearchStatus:
        """Trigger the worker; promote a pending row once the request is sent."""
        if not self.job_trigger.trigger(search_id):
            logger.warning("Worker not triggered — left for scheduler | id=%s", search_id)
            return status
        if status is not SearchStatus.PENDING:
            return status

        try:
            if await self.repository.mark_processing(search_id):
                return SearchStatus.PROCESSING
        except StoreUnavailable as e:
            logger.warning("Search stays pending | id=%s | %s", search_id, e.message)
        return status


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False
