"""
Regex Search Over the Ledger

Users type regular expressions into a search box. Patterns are untrusted:
a pattern that does not compile yields an error message and the full,
unfiltered list, never an exception.

A transaction matches when the pattern is found in its description,
amount, category or date (any one is enough).

Keystrokes arrive faster than searches are worth running, so
SearchDebouncer only evaluates the most recent pattern once typing
settles.
"""

import re
import threading
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.audit.logger import AuditLogger
from finance_tracker.models.transaction import Transaction
from finance_tracker.services.storage import LedgerStore
from finance_tracker.validation.validator import (
    compile_regex,
    highlight_matches,
    regex_error,
)


logger = structlog.get_logger(__name__)


class SearchResult(BaseModel):
    """Transactions matching a search, plus the matcher used to highlight them."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    pattern: str = ""
    transactions: list[Transaction] = Field(default_factory=list)
    matcher: Optional[re.Pattern] = None
    error: Optional[str] = None

    @property
    def is_filtered(self) -> bool:
        return self.matcher is not None

    def highlight(self, text: Any) -> Any:
        """Escape text and mark this search's matches in it."""
        return highlight_matches(text, self.matcher)


def _searchable_fields(transaction: Transaction) -> tuple[str, ...]:
    return (
        transaction.description,
        str(transaction.amount),
        transaction.category,
        transaction.date.isoformat(),
    )


class SearchFilter:
    """
    Filters the ledger snapshot with a compiled matcher.

    Never mutates the store.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger

    def filter_by_regex(self, matcher: Optional[re.Pattern]) -> list[Transaction]:
        """
        Transactions where matcher finds a match in any searchable field.

        A None matcher returns every transaction.
        """
        transactions = self._store.load()
        if matcher is None:
            return transactions

        return [
            t for t in transactions
            if any(matcher.search(value) for value in _searchable_fields(t))
        ]

    def search(self, pattern: str, case_sensitive: bool = False) -> SearchResult:
        """
        Compile a user pattern and filter with it.

        Blank patterns return everything. Invalid patterns return
        everything plus an "Invalid regex: ..." message.
        """
        pattern = (pattern or "").strip()
        if not pattern:
            return SearchResult(transactions=self._store.load())

        flags = "" if case_sensitive else "i"
        matcher = compile_regex(pattern, flags)

        if matcher is None:
            reason = regex_error(pattern, flags) or "pattern could not be compiled"
            if self._audit:
                self._audit.log_search_pattern_invalid(pattern, reason)
            return SearchResult(
                pattern=pattern,
                transactions=self._store.load(),
                error=f"Invalid regex: {reason}",
            )

        return SearchResult(
            pattern=pattern,
            transactions=self.filter_by_regex(matcher),
            matcher=matcher,
        )


class SearchDebouncer:
    """
    Runs a callback with the latest submitted pattern after a settle delay.

    Each submit() cancels the pending evaluation, so only the most recent
    pattern is ever evaluated. The callback runs on a timer thread.
    """

    def __init__(
        self,
        callback: Callable[[str], Any],
        delay: float = 0.3,
    ):
        """
        Args:
            callback: Called with the settled pattern.
            delay: Settle delay in seconds.
        """
        self._callback = callback
        self._delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[str] = None
        self._generation = 0

    @property
    def pending(self) -> Optional[str]:
        """The pattern waiting to be evaluated, if any."""
        return self._pending

    def submit(self, pattern: str) -> None:
        """Schedule pattern, superseding whatever was pending."""
        with self._lock:
            self._cancel_locked()
            self._pending = pattern
            generation = self._generation
            self._timer = threading.Timer(self._delay, self._fire, args=(generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A later submit/flush/cancel already superseded this timer
            if generation != self._generation or self._pending is None:
                return
            pattern = self._pending
            self._pending = None
            self._timer = None
            self._generation += 1

        self._callback(pattern)

    def flush(self) -> Any:
        """Evaluate the pending pattern now. Returns the callback's result."""
        with self._lock:
            pattern = self._pending
            self._cancel_locked()

        if pattern is None:
            return None
        return self._callback(pattern)

    def cancel(self) -> None:
        """Drop the pending evaluation."""
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self._generation += 1
