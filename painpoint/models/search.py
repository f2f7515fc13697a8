"""Search model — one row per logical search request, plus its aggregate counts."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from painpoint.models.base import Base


class Search(Base):
    """A search and its lifecycle status. Status is written by the worker once terminal."""

    __tablename__ = "searches"
    __table_args__ = (
        CheckConstraint(
            "status in ('pending', 'processing', 'completed', 'failed')",
            name="ck_searches_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    time_range: Mapped[str] = mapped_column(String(10), nullable=False)
    min_upvotes: Mapped[int] = mapped_column(Integer, nullable=False, insert_default=0)
    sort_by: Mapped[str] = mapped_column(String(20), nullable=False)
    search_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    client_fingerprint: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, insert_default="pending",
    )
    error_message: Mapped[str | None] = mapped_column(Text)


class SearchStats(Base):
    """Aggregate counts written by the worker when a search completes."""

    __tablename__ = "search_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    search_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("searches.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    total_mentions: Mapped[int | None] = mapped_column(Integer)
    total_posts_considered: Mapped[int | None] = mapped_column(Integer)
    total_comments_considered: Mapped[int | None] = mapped_column(Integer)
    source_tags: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
