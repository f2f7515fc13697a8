"""SQLAlchemy ORM models."""

from painpoint.models.base import Base
from painpoint.models.search import Search, SearchStats
from painpoint.models.findings import StoredAnalysis, StoredPainPoint, StoredQuote

__all__ = ["Base", "Search", "SearchStats", "StoredPainPoint", "StoredQuote", "StoredAnalysis"]
