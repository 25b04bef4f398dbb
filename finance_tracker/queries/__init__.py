"""Query package."""

from finance_tracker.queries.executor import QueryEngine, parse_day

__all__ = ["QueryEngine", "parse_day"]
