"""
Snapshot Export and Import

A snapshot is the whole ledger plus settings as one JSON document:

    {"version": "1.0.0", "exportDate": "<ISO-8601>",
     "transactions": [...], "settings": {...}}

CRITICAL: import is all-or-nothing. The document is checked completely
(shape, required fields, record types, unique ids, settings) before the
first write. A rejected document leaves the store exactly as it was.

The default mode REPLACES the ledger: prior transactions are discarded.
ImportMode.MERGE keeps existing records and upserts incoming ones by id.
"""

import asyncio
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from finance_tracker.audit.logger import AuditLogger
from finance_tracker.models.transaction import (
    REQUIRED_TRANSACTION_FIELDS,
    ImportResult,
    LedgerSettings,
    Snapshot,
    Transaction,
)
from finance_tracker.services.storage import LedgerStore


logger = structlog.get_logger(__name__)

SNAPSHOT_SUFFIX = ".json"


class ImportMode(str, Enum):
    """How an imported ledger combines with the current one."""
    REPLACE = "replace"    # Discard current transactions
    MERGE = "merge"        # Keep current, upsert incoming by id


class SnapshotFileError(Exception):
    """A snapshot file could not be read or is not valid JSON."""
    pass


class _Rejected(Exception):
    """Internal: the document failed a structural check."""
    pass


def _first_error(error: ValidationError) -> str:
    detail = error.errors()[0]
    location = ".".join(str(part) for part in detail["loc"])
    return f"{location}: {detail['msg']}" if location else detail["msg"]


class SnapshotIO:
    """
    Exports the store to a snapshot document and restores from one.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit = audit_logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_snapshot(self) -> Snapshot:
        """The full current ledger and settings."""
        snapshot = Snapshot(
            version=self._store.version,
            export_date=self._clock(),
            transactions=self._store.load(),
            settings=self._store.load_settings(),
        )
        if self._audit:
            self._audit.log_snapshot_exported(len(snapshot.transactions))
        return snapshot

    def export_json(self, indent: int = 2) -> str:
        """The export document as pretty-printed JSON text."""
        return json.dumps(self.export_snapshot().to_document(), indent=indent)

    def export_filename(self, now: Optional[datetime] = None) -> str:
        """finance-tracker-backup-<epoch-millis>.json"""
        millis = int((now or self._clock()).timestamp() * 1000)
        return f"finance-tracker-backup-{millis}{SNAPSHOT_SUFFIX}"

    def write_file(self, path: Union[str, Path]) -> Path:
        """
        Write the export document to path.

        Raises:
            SnapshotFileError: If the file cannot be written
        """
        path = Path(path)
        try:
            path.write_text(self.export_json(), encoding="utf-8")
        except OSError as e:
            raise SnapshotFileError(f"Failed to write file: {e}") from e
        return path

    # =========================================================================
    # IMPORT
    # =========================================================================

    def _check_document(
        self,
        doc: Any,
    ) -> tuple[list[Transaction], Optional[LedgerSettings]]:
        """
        Run every structural check. Raises _Rejected with the user message.
        """
        if isinstance(doc, Snapshot):
            doc = doc.to_document()

        if not isinstance(doc, Mapping):
            raise _Rejected("Invalid data format")

        records = doc.get("transactions")
        if not isinstance(records, (list, tuple)):
            raise _Rejected("Missing or invalid transactions array")

        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise _Rejected(f"Transaction {index + 1} is not a record")
            for field in REQUIRED_TRANSACTION_FIELDS:
                if field not in record:
                    raise _Rejected(f"Transaction missing required field: {field}")

        now = self._clock()
        transactions = []
        for index, record in enumerate(records):
            stamped = dict(record)
            if "createdAt" not in stamped and "created_at" not in stamped:
                stamped["createdAt"] = now
            if "updatedAt" not in stamped and "updated_at" not in stamped:
                stamped["updatedAt"] = stamped.get("createdAt", stamped.get("created_at"))
            try:
                transactions.append(Transaction.model_validate(stamped))
            except ValidationError as e:
                raise _Rejected(
                    f"Transaction {index + 1} is invalid: {_first_error(e)}"
                ) from e

        seen: set[str] = set()
        for transaction in transactions:
            if transaction.id in seen:
                raise _Rejected(f"Duplicate transaction id: {transaction.id}")
            seen.add(transaction.id)

        settings = None
        raw_settings = doc.get("settings")
        if isinstance(raw_settings, Mapping):
            try:
                settings = LedgerSettings.model_validate(
                    {**LedgerSettings().to_record(), **raw_settings}
                )
            except ValidationError as e:
                raise _Rejected(f"Invalid settings: {_first_error(e)}") from e

        return transactions, settings

    def _merge(self, incoming: list[Transaction]) -> list[Transaction]:
        merged = self._store.load()
        positions = {t.id: i for i, t in enumerate(merged)}
        for transaction in incoming:
            if transaction.id in positions:
                merged[positions[transaction.id]] = transaction
            else:
                positions[transaction.id] = len(merged)
                merged.append(transaction)
        return merged

    def import_snapshot(
        self,
        doc: Any,
        mode: Union[ImportMode, str] = ImportMode.REPLACE,
    ) -> ImportResult:
        """
        Restore transactions (and settings, when present) from a document.

        Args:
            doc: Parsed export document (mapping) or a Snapshot.
            mode: REPLACE discards current transactions; MERGE upserts by id.

        Returns:
            ImportResult. success=False carries the reason; nothing was written.
        """
        try:
            mode = ImportMode(mode)
        except ValueError:
            return self._failed(f"Unknown import mode: {mode}")

        try:
            transactions, settings = self._check_document(doc)
        except _Rejected as e:
            return self._failed(str(e))

        count = len(transactions)
        if mode == ImportMode.MERGE:
            transactions = self._merge(transactions)

        if not self._store.replace_all(transactions, settings):
            return self._failed("Failed to save imported data")

        if self._audit:
            self._audit.log_snapshot_imported(count, mode.value)

        return ImportResult(
            success=True,
            message=f"Successfully imported {count} transactions",
            imported=count,
        )

    def _failed(self, message: str) -> ImportResult:
        logger.warning("import_rejected", reason=message)
        if self._audit:
            self._audit.log_import_failed(message)
        return ImportResult(success=False, message=message)

    # =========================================================================
    # FILES
    # =========================================================================

    def read_file(self, path: Union[str, Path]) -> Any:
        """
        Read and parse a snapshot file in full.

        Raises:
            SnapshotFileError: Not a .json file, unreadable, or invalid JSON
        """
        path = Path(path)
        if path.suffix.lower() != SNAPSHOT_SUFFIX:
            raise SnapshotFileError("File must be a JSON file")

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SnapshotFileError("Failed to read file") from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise SnapshotFileError(f"Invalid JSON file: {e}") from e

    async def import_file(
        self,
        path: Union[str, Path],
        mode: Union[ImportMode, str] = ImportMode.REPLACE,
    ) -> ImportResult:
        """
        Read a snapshot file off the event loop, then import it.

        Raises:
            SnapshotFileError: If the file cannot be read or parsed
        """
        doc = await asyncio.to_thread(self.read_file, path)
        return self.import_snapshot(doc, mode)
