"""Services package."""

from finance_tracker.services.storage import (
    BackendUnavailableError,
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    LedgerStore,
    StorageError,
)

__all__ = [
    "BackendUnavailableError",
    "InMemoryBackend",
    "JsonFileBackend",
    "KeyValueBackend",
    "LedgerStore",
    "StorageError",
]
