"""
Storage Services Package

Provides the key-value substrate interface, its implementations, and
the LedgerStore that holds transactions and settings on top of it.
"""

from finance_tracker.services.storage.interface import (
    BackendUnavailableError,
    KeyValueBackend,
    StorageError,
)
from finance_tracker.services.storage.backends import (
    InMemoryBackend,
    JsonFileBackend,
)
from finance_tracker.services.storage.ledger_store import (
    CURRENT_VERSION,
    LedgerStore,
    format_bytes,
    generate_id,
)

__all__ = [
    # Interfaces
    "KeyValueBackend",
    # Exceptions
    "BackendUnavailableError",
    "StorageError",
    # Backends
    "InMemoryBackend",
    "JsonFileBackend",
    # Store
    "CURRENT_VERSION",
    "LedgerStore",
    "format_bytes",
    "generate_id",
]
