"""
Shared fixtures.

Every store runs on an InMemoryBackend with a pinned clock, and every
date window is evaluated against a fixed "today".
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.services.storage import InMemoryBackend, LedgerStore, StorageError


TODAY = date(2026, 10, 19)


class FakeClock:
    """Returns a fixed instant that tests can move forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FlakyBackend(InMemoryBackend):
    """In-memory substrate whose writes fail for the keys in fail_on."""

    def __init__(self):
        super().__init__()
        self.fail_on: set[str] = set()

    def set_item(self, key: str, value: str) -> None:
        if key in self.fail_on:
            raise StorageError(f"write refused: {key}")
        super().set_item(key, value)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def store(backend, clock, audit_logger) -> LedgerStore:
    return LedgerStore(backend, clock=clock, audit_logger=audit_logger)


@pytest.fixture
def draft_fields():
    """Valid user-entered fields for one transaction."""
    return {
        "description": "Lunch at cafe",
        "amount": "12.50",
        "category": "Food",
        "date": "2026-10-18",
    }


@pytest.fixture
def seeded_store(store):
    """A store holding a small, varied ledger."""
    for fields in (
        {"description": "Morning coffee", "amount": "3.50", "category": "Food", "date": "2026-10-19"},
        {"description": "Bus ticket", "amount": "2", "category": "Transport", "date": "2026-10-15"},
        {"description": "Groceries for week", "amount": "45.20", "category": "Food", "date": "2026-10-10"},
        {"description": "Concert ticket", "amount": "60", "category": "Entertainment", "date": "2026-09-28"},
    ):
        assert store.add(fields) is not None
    return store


@pytest.fixture
def flaky_backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def flaky_store(flaky_backend, clock, audit_logger) -> LedgerStore:
    return LedgerStore(flaky_backend, clock=clock, audit_logger=audit_logger)
