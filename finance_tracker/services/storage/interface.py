"""
Abstract Key-Value Substrate

DESIGN DECISION: The ledger store sits on a synchronous key-value
substrate with string values, the shape a browser's localStorage offers.
This allows us to:
1. Persist to a JSON file for a desktop session
2. Use in-memory storage for testing
3. Keep the ledger logic decoupled from where the bytes live

The interface is intentionally tiny: get, set, remove, list keys.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueBackend(ABC):
    """
    Abstract interface for the host key-value substrate.

    Implementations raise StorageError (or a subclass) on failure;
    the ledger store catches it and degrades.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StorageError: If the substrate cannot be read
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the substrate cannot be written
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.

        Raises:
            StorageError: If the substrate cannot be written
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """All keys currently stored."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class BackendUnavailableError(StorageError):
    """The substrate could not be read or written."""
    pass
