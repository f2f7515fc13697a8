"""Result cache — SearchResult projections by search id and by search key.

Keys (TTL defaults to settings.cache_ttl_seconds, 2h):
  - search:result:id:{searchId}   → SearchResult JSON
  - search:result:key:{searchKey} → SearchResult JSON
  - search:map:{searchKey}        → searchId

All three are advisory. A payload that no longer validates is treated as a
miss and deleted on the spot, so a corrupt entry costs one failed parse.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from painpoint.config import settings
from painpoint.orchestrator.schemas import SearchResult
from painpoint.services.cache_store import CacheStore
from painpoint.services.search_key import result_by_id_key, result_by_key_key, search_map_key

logger = logging.getLogger(__name__)


class ResultCache:
    """Validated read/write access to cached search results."""

    def __init__(self, store: CacheStore, ttl: int | None = None):
        self.store = store
        self.ttl = ttl or settings.cache_ttl_seconds

    async def get_by_id(self, search_id: str) -> SearchResult | None:
        return await self._read(result_by_id_key(search_id))

    async def get_by_key(self, search_key: str) -> SearchResult | None:
        return await self._read(result_by_key_key(search_key))

    async def set(
        self,
        search_id: str,
        search_key: str | None,
        result: SearchResult | dict,
        ttl: int | None = None,
    ) -> bool:
        """Validate then write the by-id and (optionally) by-key projections.

        The writes are independent; returns True only if every write landed.
        A payload that fails the shape contract never reaches the store.
        """
        payload = result.model_dump() if isinstance(result, SearchResult) else result
        try:
            validated = SearchResult.model_validate(payload)
        except ValidationError as e:
            logger.error("Refusing to cache invalid result | id=%s | %s", search_id, str(e)[:200])
            return False
        serialized = json.dumps(validated.to_wire(), ensure_ascii=False)
        ttl = ttl or self.ttl

        targets = [result_by_id_key(search_id)]
        if search_key:
            targets.append(result_by_key_key(search_key))

        all_ok = True
        for key in targets:
            reply = await self.store.set(key, serialized, ttl)
            if reply.ok and reply.value:
                logger.info("Cache SET | key=%s | ttl=%ds", key[:60], ttl)
            else:
                all_ok = False
                logger.warning("Cache SET failed | key=%s | %s", key[:60], reply.error)
        return all_ok

    async def get_search_id_for_key(self, search_key: str) -> str | None:
        reply = await self.store.get(search_map_key(search_key))
        raw = reply.value if reply.ok else None
        if not raw:
            return None

        # Older writers stored the id JSON-encoded
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            return raw
        return parsed if isinstance(parsed, str) and parsed else None

    async def set_search_id_for_key(
        self,
        search_key: str,
        search_id: str,
        ttl: int | None = None,
    ) -> bool:
        ttl = ttl or settings.search_key_mapping_ttl_seconds
        reply = await self.store.set(search_map_key(search_key), search_id, ttl)
        if not (reply.ok and reply.value):
            logger.warning("Search key mapping failed | id=%s | %s", search_id, reply.error)
            return False
        return True

    async def _read(self, key: str) -> SearchResult | None:
        reply = await self.store.get(key)
        if not reply.ok:
            return None
        raw = reply.value
        if not raw:
            logger.debug("Cache MISS | key=%s", key[:60])
            return None

        try:
            parsed = json.loads(raw)
            result = SearchResult.model_validate(clean_analysis_data(parsed))
        except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
            logger.warning("Cache entry corrupt — deleting | key=%s | %s", key[:60], str(e)[:200])
            deleted = await self.store.delete(key)
            if not deleted.ok:
                logger.warning("Corrupt cache entry not deleted | key=%s | %s", key[:60], deleted.error)
            return None

        logger.info("Cache HIT | key=%s", key[:60])
        return result


def clean_analysis_data(parsed: Any) -> Any:
    """Drop problem clusters / product ideas without a title and description.

    A partially-bad analysis should not invalidate the whole cached result.
    """
    if not isinstance(parsed, dict):
        return parsed
    analysis = parsed.get("analysis")
    if not isinstance(analysis, dict):
        return parsed

    for field in ("problemClusters", "productIdeas"):
        items = analysis.get(field)
        if isinstance(items, list):
            analysis[field] = [item for item in items if _has_title_and_description(item)]
    return parsed


def _has_title_and_description(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("title"), str)
        and len(item["title"]) > 0
        and isinstance(item.get("description"), str)
        and len(item["description"]) > 0
    )
