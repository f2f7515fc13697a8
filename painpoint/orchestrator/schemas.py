"""Pydantic models for API input/output — shared by the cache, store and orchestrator.

Split into: enums, request, result entities, and final API responses.
Wire format is camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

import uuid
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TOPIC_MIN_LENGTH = 2
TOPIC_MAX_LENGTH = 100
MAX_TAGS = 10
MAX_UPVOTES_FILTER = 10000

_INVALID_TOPIC_CHARS = set("<>{}[]\\")


# ═══════════════ ENUMS ═══════════════

class TimeRange(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    UPVOTES = "upvotes"
    RECENCY = "recency"


class SourceTag(str, Enum):
    """Hacker News item tags a search can be restricted to."""
    STORY = "story"
    ASK_HN = "ask_hn"
    SHOW_HN = "show_hn"
    FRONT_PAGE = "front_page"
    POLL = "poll"


class SearchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        match self:
            case SearchStatus.COMPLETED | SearchStatus.FAILED:
                return True
            case SearchStatus.PENDING | SearchStatus.PROCESSING:
                return False


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def to_wire(self) -> dict:
        """JSON-safe camelCase dict, optional fields omitted when unset."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _uuid_str(value: str) -> str:
    return str(uuid.UUID(str(value)))


# ═══════════════ REQUEST ═══════════════

class SearchRequest(CamelModel):
    """Inbound search request. Unknown fields are rejected."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "forbid",
    }

    topic: str = Field(min_length=TOPIC_MIN_LENGTH, max_length=TOPIC_MAX_LENGTH)
    tags: list[SourceTag] = Field(default_factory=list, max_length=MAX_TAGS)
    time_range: TimeRange = TimeRange.MONTH
    min_upvotes: int = Field(default=0, ge=0, le=MAX_UPVOTES_FILTER)
    sort_by: SortBy = SortBy.RELEVANCE

    @field_validator("topic")
    @classmethod
    def _clean_topic(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Topic cannot be empty")
        if len(value) < TOPIC_MIN_LENGTH:
            raise ValueError(f"Topic must be at least {TOPIC_MIN_LENGTH} characters")
        if any(ch in _INVALID_TOPIC_CHARS for ch in value):
            raise ValueError("Topic contains invalid characters")
        return value


# ═══════════════ RESULT ENTITIES ═══════════════

class PainPoint(CamelModel):
    id: str
    search_id: str
    title: str
    source_tag: str
    mentions_count: int = Field(ge=0)
    severity_score: float | None = Field(default=None, ge=0, le=10)

    @field_validator("id", "search_id")
    @classmethod
    def _check_ids(cls, value: str) -> str:
        return _uuid_str(value)


class PainPointQuote(CamelModel):
    id: str
    pain_point_id: str
    quote_text: str
    author_handle: str | None = None
    upvotes: int = Field(ge=0)
    permalink: str

    @field_validator("id", "pain_point_id")
    @classmethod
    def _check_ids(cls, value: str) -> str:
        return _uuid_str(value)

    @field_validator("permalink")
    @classmethod
    def _check_permalink(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("permalink must be an http(s) URL")
        return value


class ProblemCluster(CamelModel):
    title: str
    description: str
    severity: float = Field(ge=0, le=10)
    mention_count: int = Field(ge=0)
    examples: list[str] = Field(default_factory=list)


class ProductIdea(CamelModel):
    title: str
    description: str
    target_problem: str
    impact_score: float = Field(ge=0, le=10)


class AiAnalysis(CamelModel):
    summary: str
    problem_clusters: list[ProblemCluster] = Field(default_factory=list)
    product_ideas: list[ProductIdea] = Field(default_factory=list)
    model: str | None = None
    tokens_used: int | None = Field(default=None, ge=0)


# ═══════════════ API RESPONSES ═══════════════

class SearchResult(CamelModel):
    """The unit that is cached and returned. Only completed results carry data."""

    search_id: str
    status: SearchStatus
    topic: str
    tags: list[SourceTag] = Field(default_factory=list)
    time_range: TimeRange = TimeRange.MONTH
    min_upvotes: int = Field(default=0, ge=0)
    sort_by: SortBy = SortBy.RELEVANCE
    total_mentions: int | None = Field(default=None, ge=0)
    total_posts_considered: int | None = Field(default=None, ge=0)
    total_comments_considered: int | None = Field(default=None, ge=0)
    source_tags: list[str] | None = None
    pain_points: list[PainPoint] = Field(default_factory=list)
    quotes: list[PainPointQuote] = Field(default_factory=list)
    analysis: AiAnalysis | None = None
    error_message: str | None = None

    @field_validator("search_id")
    @classmethod
    def _check_ids(cls, value: str) -> str:
        return _uuid_str(value)

    @model_validator(mode="after")
    def _payload_only_when_completed(self) -> SearchResult:
        if self.status is not SearchStatus.COMPLETED and (self.pain_points or self.quotes):
            raise ValueError(f"a {self.status.value} search cannot carry pain points or quotes")
        return self

    @classmethod
    def failed(
        cls,
        search_id: str,
        error_message: str | None = None,
        request: SearchRequest | None = None,
    ) -> SearchResult:
        """Terminal failure view synthesized from the stored status row.

        With the originating request at hand the view echoes its normalized
        topic and filters, as a stored search would.
        """
        filters = {}
        if request is not None:
            filters = {
                "topic": request.topic.strip().lower(),
                "tags": sorted(request.tags, key=lambda t: t.value),
                "time_range": request.time_range,
                "min_upvotes": request.min_upvotes,
                "sort_by": request.sort_by,
            }
        return cls(
            search_id=search_id,
            status=SearchStatus.FAILED,
            topic=filters.pop("topic", ""),
            error_message=error_message or None,
            **filters,
        )


class SearchAccepted(CamelModel):
    """Acknowledgment for a search that has not reached a terminal state."""

    search_id: str
    status: SearchStatus = SearchStatus.PROCESSING

    @field_validator("status")
    @classmethod
    def _non_terminal(cls, value: SearchStatus) -> SearchStatus:
        if value.is_terminal:
            raise ValueError("an accepted search must be pending or processing")
        return value
