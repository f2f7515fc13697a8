"""Persistent store access."""

from painpoint.store.search_repository import SearchRepository, SearchStatusView

__all__ = ["SearchRepository", "SearchStatusView"]
