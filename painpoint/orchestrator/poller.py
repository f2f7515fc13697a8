"""Short-poll controller — bounded wait for an asynchronous search to finish.

Each iteration:
  1. Result cache by id (cheapest) — completed hit returns immediately
  2. Status row from the store — missing row returns None (not found)
  3. completed → cache again, else assemble from the store
     failed    → synthesized failure result, stop polling
     pending / processing → sleep and repeat

Returns None when the deadline passes without a terminal state. The
deadline is checked between iterations, so a slow final call can overrun
it by one round trip.
"""

import asyncio
import logging
import time

from painpoint.config import settings
from painpoint.orchestrator.schemas import SearchResult, SearchStatus
from painpoint.services.result_cache import ResultCache
from painpoint.store import SearchRepository

logger = logging.getLogger(__name__)


class ShortPoller:
    def __init__(
        self,
        result_cache: ResultCache,
        repository: SearchRepository,
        max_wait_ms: int | None = None,
        interval_ms: int | None = None,
    ):
        self.result_cache = result_cache
        self.repository = repository
        self.max_wait_ms = max_wait_ms if max_wait_ms is not None else settings.short_poll_max_wait_ms
        self.interval_ms = interval_ms if interval_ms is not None else settings.short_poll_interval_ms

    async def poll(self, search_id: str, max_wait_ms: int | None = None) -> SearchResult | None:
        max_wait = (max_wait_ms if max_wait_ms is not None else self.max_wait_ms) / 1000
        start = time.monotonic()
        iterations = 0

        while time.monotonic() - start < max_wait:
            iterations += 1

            cached = await self.result_cache.get_by_id(search_id)
            if cached is not None and cached.status is SearchStatus.COMPLETED:
                logger.info("Poll hit (cache) | id=%s | iter=%d", search_id, iterations)
                return cached

            row = await self.repository.get_search_status(search_id)
            if row is None:
                logger.warning("Poll stopped — search not found | id=%s", search_id)
                return None

            match row.status:
                case SearchStatus.COMPLETED:
                    cached = await self.result_cache.get_by_id(search_id)
                    if cached is not None:
                        return cached
                    logger.info("Poll completed — assembling from store | id=%s", search_id)
                    return await self.repository.assemble_full_result(search_id)
                case SearchStatus.FAILED:
                    logger.info("Poll terminal failure | id=%s | %s", search_id, row.error_message)
                    return SearchResult.failed(search_id, row.error_message)
                case SearchStatus.PENDING | SearchStatus.PROCESSING:
                    pass

            remaining = max_wait - (time.monotonic() - start)
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.interval_ms / 1000, remaining))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("Poll timed out | id=%s | iter=%d | %dms", search_id, iterations, elapsed_ms)
        return None
