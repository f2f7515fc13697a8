"""Search repository — the narrow slice of the persistent store the core uses.

  - insert_search        create a row for a new logical request
  - get_search_status    (id, status, error message) projection
  - find_recent_search   dedup lookup by normalized request
  - mark_processing      pending → processing, never backward
  - assemble_full_result rebuild a SearchResult from the normalized tables

SQLAlchemy failures surface as StoreUnavailable: the store is the fallback
of record, so there is nothing further to degrade to.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from painpoint.errors import StoreUnavailable
from painpoint.models import Search, SearchStats, StoredAnalysis, StoredPainPoint, StoredQuote
from painpoint.orchestrator.schemas import SearchRequest, SearchResult, SearchStatus, SourceTag
from painpoint.services.search_key import build_search_key

logger = logging.getLogger(__name__)

_KNOWN_TAGS = {t.value for t in SourceTag}


class SearchStatusView(BaseModel):
    """Status projection of a Search row."""
    search_id: str
    status: SearchStatus
    error_message: str | None = None
    search_key: str | None = None


class SearchRepository:
    """Async SQLAlchemy implementation of the persistent-store contract."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert_search(
        self,
        request: SearchRequest,
        status: SearchStatus = SearchStatus.PENDING,
        client_fingerprint: str | None = None,
    ) -> SearchStatusView:
        row = Search(
            id=uuid.uuid4(),
            topic=request.topic.strip().lower(),
            tags=sorted(t.value for t in request.tags) or None,
            time_range=request.time_range.value,
            min_upvotes=request.min_upvotes,
            sort_by=request.sort_by.value,
            search_key=build_search_key(request),
            client_fingerprint=client_fingerprint,
            status=status.value,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Search insert failed | topic=%s | %s", request.topic[:80], str(e)[:200])
            raise StoreUnavailable("Failed to create search") from e

        logger.info("Search created | id=%s | status=%s", row.id, status.value)
        return _status_view(row)

    async def get_search_status(self, search_id: str) -> SearchStatusView | None:
        row_id = _parse_id(search_id)
        if row_id is None:
            return None
        try:
            async with self._session_factory() as session:
                row = await session.get(Search, row_id)
        except SQLAlchemyError as e:
            logger.error("Search status read failed | id=%s | %s", search_id, str(e)[:200])
            raise StoreUnavailable("Failed to fetch search status") from e
        return _status_view(row) if row else None

    async def find_recent_search(
        self,
        request: SearchRequest,
        statuses: list[SearchStatus],
        within_seconds: int = 7200,
    ) -> SearchStatusView | None:
        """Most recent row for the same normalized request in one of `statuses`."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=within_seconds)
        stmt = (
            select(Search)
            .where(Search.search_key == build_search_key(request))
            .where(Search.status.in_([s.value for s in statuses]))
            .where(Search.created_at >= cutoff)
            .order_by(Search.created_at.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            logger.error("Dedup lookup failed | topic=%s | %s", request.topic[:80], str(e)[:200])
            raise StoreUnavailable("Failed to look up existing searches") from e
        return _status_view(row) if row else None

    async def mark_processing(self, search_id: str) -> bool:
        """Promote a pending row to processing. Returns True if a row changed."""
        row_id = _parse_id(search_id)
        if row_id is None:
            return False
        stmt = (
            update(Search)
            .where(Search.id == row_id)
            .where(Search.status == SearchStatus.PENDING.value)
            .values(status=SearchStatus.PROCESSING.value)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Promote to processing failed | id=%s | %s", search_id, str(e)[:200])
            raise StoreUnavailable("Failed to update search status") from e
        return bool(result.rowcount)

    async def assemble_full_result(self, search_id: str) -> SearchResult | None:
        """Rebuild the full SearchResult from the normalized tables."""
        row_id = _parse_id(search_id)
        if row_id is None:
            return None
        try:
            async with self._session_factory() as session:
                search = await session.get(Search, row_id)
                if search is None:
                    logger.warning("Assemble skipped — search not found | id=%s", search_id)
                    return None

                stats = (await session.execute(
                    select(SearchStats).where(SearchStats.search_id == row_id)
                )).scalars().first()

                pain_points = list((await session.execute(
                    select(StoredPainPoint)
                    .where(StoredPainPoint.search_id == row_id)
                    .order_by(
                        StoredPainPoint.severity_score.desc().nulls_last(),
                        StoredPainPoint.mentions_count.desc(),
                    )
                )).scalars())

                quotes = []
                if pain_points:
                    quotes = list((await session.execute(
                        select(StoredQuote)
                        .where(StoredQuote.pain_point_id.in_([p.id for p in pain_points]))
                        .order_by(StoredQuote.upvotes.desc())
                    )).scalars())

                analysis = (await session.execute(
                    select(StoredAnalysis).where(StoredAnalysis.search_id == row_id)
                )).scalars().first()
        except SQLAlchemyError as e:
            logger.error("Assemble failed | id=%s | %s", search_id, str(e)[:200])
            raise StoreUnavailable("Failed to read search results") from e

        try:
            return build_search_result(search, stats, pain_points, quotes, analysis)
        except ValidationError as e:
            logger.error("Assembled result failed validation | id=%s | %s", search_id, str(e)[:200])
            return None


def build_search_result(
    search: Search,
    stats: SearchStats | None,
    pain_points: list[StoredPainPoint],
    quotes: list[StoredQuote],
    analysis: StoredAnalysis | None,
) -> SearchResult:
    """Map ORM rows to a validated SearchResult.

    Unknown tags and malformed analysis entries are dropped, not fatal.
    Pain points and quotes are only attached to completed searches.
    """
    status = SearchStatus(search.status)
    completed = status is SearchStatus.COMPLETED

    payload = {
        "search_id": str(search.id),
        "status": status,
        "topic": search.topic,
        "tags": [t for t in (search.tags or []) if t in _KNOWN_TAGS],
        "time_range": search.time_range,
        "min_upvotes": search.min_upvotes,
        "sort_by": search.sort_by,
        "error_message": search.error_message,
    }

    if stats is not None:
        payload.update(
            total_mentions=stats.total_mentions,
            total_posts_considered=stats.total_posts_considered,
            total_comments_considered=stats.total_comments_considered,
            source_tags=stats.source_tags,
        )

    if completed:
        payload["pain_points"] = [
            {
                "id": str(p.id),
                "search_id": str(p.search_id),
                "title": p.title,
                "source_tag": p.source_tag,
                "mentions_count": p.mentions_count,
                "severity_score": float(p.severity_score) if p.severity_score is not None else None,
            }
            for p in pain_points
        ]
        payload["quotes"] = [
            {
                "id": str(q.id),
                "pain_point_id": str(q.pain_point_id),
                "quote_text": q.quote_text,
                "author_handle": q.author_handle,
                "upvotes": q.upvotes,
                "permalink": q.permalink,
            }
            for q in quotes
        ]

    if analysis is not None:
        payload["analysis"] = {
            "summary": analysis.summary,
            "problem_clusters": [c for c in (analysis.problem_clusters or []) if _is_problem_cluster(c)],
            "product_ideas": [i for i in (analysis.product_ideas or []) if _is_product_idea(i)],
            "model": analysis.model,
            "tokens_used": analysis.tokens_used,
        }

    return SearchResult.model_validate(payload)


def _status_view(row: Search) -> SearchStatusView:
    return SearchStatusView(
        search_id=str(row.id),
        status=SearchStatus(row.status),
        error_message=row.error_message,
        search_key=row.search_key,
    )


def _parse_id(search_id: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(search_id))
    except ValueError:
        return None


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_problem_cluster(value) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("title"), str)
        and isinstance(value.get("description"), str)
        and _is_number(value.get("severity"))
        and _is_number(value.get("mentionCount"))
        and isinstance(value.get("examples"), list)
        and all(isinstance(e, str) for e in value["examples"])
    )


def _is_product_idea(value) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("title"), str)
        and isinstance(value.get("description"), str)
        and isinstance(value.get("targetProblem"), str)
        and _is_number(value.get("impactScore"))
    )
