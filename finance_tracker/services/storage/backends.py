"""
Key-Value Backends

InMemoryBackend keeps values in a dict for tests and throwaway sessions.
JsonFileBackend keeps every key in one JSON object on disk and replaces
the file atomically on each write.

TRADEOFFS:
- One writer at a time (one session), no locking
- The whole file is rewritten on every write (fine for a personal ledger)
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.services.storage.interface import (
    BackendUnavailableError,
    KeyValueBackend,
)


logger = structlog.get_logger(__name__)


class InMemoryBackend(KeyValueBackend):
    """Dict-backed substrate."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileBackend(KeyValueBackend):
    """
    File-backed substrate.

    The file holds a single JSON object mapping keys to string values.
    A file that is missing reads as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self, replace_corrupt: bool = False) -> dict[str, str]:
        """
        Read the whole key map.

        Args:
            replace_corrupt: Treat a corrupt file as empty (the next write
                             replaces it) instead of raising.

        Raises:
            BackendUnavailableError: unreadable file, or corrupt file
                                     when replace_corrupt is False
        """
        if not self._path.exists():
            return {}

        try:
            content = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise BackendUnavailableError(f"Cannot read {self._path}: {e}") from e

        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            data = None
            error = str(e)
        else:
            error = "not a JSON object"

        if not isinstance(data, dict):
            if replace_corrupt:
                logger.warning("storage_file_replaced", path=str(self._path), error=error)
                return {}
            raise BackendUnavailableError(f"Corrupt storage file {self._path}: {error}")

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_all(self, data: dict[str, str]) -> None:
        """Write the key map to a temp file, then swap it into place."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _commit(self, data: dict[str, str]) -> None:
        try:
            self._write_all(data)
        except OSError as e:
            raise BackendUnavailableError(f"Cannot write {self._path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all(replace_corrupt=True)
        data[key] = value
        self._commit(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all(replace_corrupt=True)
        if key in data:
            del data[key]
            self._commit(data)

    def keys(self) -> list[str]:
        return list(self._read_all())
