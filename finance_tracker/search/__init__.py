"""Interactive search package."""

from finance_tracker.search.filter import SearchDebouncer, SearchFilter, SearchResult

__all__ = ["SearchDebouncer", "SearchFilter", "SearchResult"]
