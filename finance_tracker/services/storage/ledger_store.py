"""
Ledger Store

CRUD over the persisted transaction collection and the settings
singleton, on top of a KeyValueBackend.

Persisted layout (three keys):
- <prefix>_transactions -> JSON array of transaction records
- <prefix>_settings     -> JSON settings record
- <prefix>_version      -> version string, written with every transaction save

FAILURE POLICY:
- Reads never raise. A missing, unparsable or structurally wrong
  collection reads as an empty list; settings fall back to defaults.
- A single record that does not parse as a transaction is left out of
  load() but kept verbatim in the collection; add/update/remove write
  it back untouched.
- Writes never raise. They return False (or None where a record is
  returned) and log the cause. A multi-key write that fails part way
  restores the keys it already wrote.

The store does NOT validate field grammar. Callers run the validator
first; the store only checks types so that the persisted data and the
in-memory snapshot stay structurally identical.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union
from uuid import uuid4

import structlog
from pydantic import ValidationError

from finance_tracker.audit.logger import AuditLogger
from finance_tracker.models.transaction import (
    STORE_MANAGED_FIELDS,
    LedgerSettings,
    Transaction,
    TransactionDraft,
    TransactionPatch,
)
from finance_tracker.services.storage.interface import KeyValueBackend, StorageError


logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "financeTracker"
CURRENT_VERSION = "1.0.0"

_AVAILABILITY_PROBE_KEY = "__storage_test__"

# Patch keys that could overwrite store-assigned fields, in either spelling
_MANAGED_KEYS = STORE_MANAGED_FIELDS | {"createdAt", "updatedAt"}

# Previous value of a key that could not be read before overwriting it
_UNREADABLE = object()

# A stored entry: a parsed transaction, or a record kept as it was found
Entry = Union[Transaction, Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str = "txn", now: Optional[datetime] = None) -> str:
    """
    Timestamp plus a random suffix: txn_<epoch-millis>_<12 hex chars>.
    """
    millis = int((now or utc_now()).timestamp() * 1000)
    return f"{prefix}_{millis}_{uuid4().hex[:12]}"


def format_bytes(size: int) -> str:
    """Human readable byte count: 0 B, 512 B, 1.5 KB, 2 MB."""
    if size <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1

    return f"{round(value, 2):g} {units[index]}"


class LedgerStore:
    """
    The one handle to persisted ledger state.

    Built once at startup and passed to every component that reads or
    writes the ledger.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        version: str = CURRENT_VERSION,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the store.

        Args:
            backend: Key-value substrate supplied by the host.
            key_prefix: Prefix of the three persisted keys.
            version: Version marker written with every transaction save.
            clock: Returns the current instant (UTC). Defaults to utc_now.
            audit_logger: Receives storage_error events when a read or
                          write degrades.
        """
        self._backend = backend
        self._version = version
        self._clock = clock or utc_now
        self._audit = audit_logger
        self.transactions_key = f"{key_prefix}_transactions"
        self.settings_key = f"{key_prefix}_settings"
        self.version_key = f"{key_prefix}_version"

    @property
    def version(self) -> str:
        return self._version

    def _storage_failed(self, operation: str, error: Exception, **details) -> None:
        logger.error("storage_operation_failed", operation=operation, error=str(error), **details)
        if self._audit:
            self._audit.log_storage_error(operation, str(error), details or None)

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    # =========================================================================
    # RAW ACCESS
    # =========================================================================

    def _read_records(self) -> list:
        """The stored array as plain JSON values; [] when unusable."""
        try:
            raw = self._backend.get_item(self.transactions_key)
        except StorageError as e:
            self._storage_failed("load", e, key=self.transactions_key)
            return []

        if not raw:
            return []

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            self._storage_failed("load", e, key=self.transactions_key)
            return []

        if not isinstance(data, list):
            logger.error("invalid_transactions_structure", key=self.transactions_key)
            return []

        return data

    def _entries(self) -> list[Entry]:
        """Stored records in order, parsed where possible."""
        entries: list[Entry] = []
        unreadable = []
        for position, record in enumerate(self._read_records()):
            try:
                entries.append(Transaction.model_validate(record))
            except ValidationError:
                entries.append(record)
                unreadable.append(position)

        if unreadable:
            self._storage_failed(
                "load",
                ValueError(f"{len(unreadable)} stored records are not transactions"),
                key=self.transactions_key,
                positions=unreadable,
            )
        return entries

    def _previous_value(self, key: str) -> Any:
        try:
            return self._backend.get_item(key)
        except StorageError:
            return _UNREADABLE

    def _write_keys(self, operation: str, values: list[tuple[str, str]]) -> bool:
        """
        Write keys in order. On failure, restore the ones already written.
        """
        written: list[tuple[str, Any]] = []
        for key, value in values:
            previous = self._previous_value(key)
            try:
                self._backend.set_item(key, value)
            except StorageError as e:
                self._storage_failed(operation, e, key=key)
                self._restore(written)
                return False
            written.append((key, previous))
        return True

    def _restore(self, written: list[tuple[str, Any]]) -> None:
        for key, previous in reversed(written):
            if previous is _UNREADABLE:
                logger.error("storage_rollback_skipped", key=key)
                continue
            try:
                if previous is None:
                    self._backend.remove_item(key)
                else:
                    self._backend.set_item(key, previous)
            except StorageError as e:
                logger.error("storage_rollback_failed", key=key, error=str(e))

    @staticmethod
    def _serialize(entries: Sequence[Entry]) -> str:
        return json.dumps([
            entry.to_record() if isinstance(entry, Transaction) else entry
            for entry in entries
        ])

    def _write_entries(self, operation: str, entries: Sequence[Entry]) -> bool:
        try:
            payload = self._serialize(entries)
        except (TypeError, ValueError) as e:
            self._storage_failed(operation, e, key=self.transactions_key)
            return False

        return self._write_keys(operation, [
            (self.version_key, self._version),
            (self.transactions_key, payload),
        ])

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def load(self) -> list[Transaction]:
        """
        Current transactions in insertion order.

        Returns an empty list if the collection is absent, fails to parse
        or is not an array. Records that are not transactions are skipped.
        """
        return [entry for entry in self._entries() if isinstance(entry, Transaction)]

    def save(self, transactions: Sequence[Union[Transaction, Mapping[str, Any]]]) -> bool:
        """
        Persist the full collection and stamp the version key.

        Returns False, without writing anything, if the argument is not
        a sequence or any record fails to serialize.
        """
        if not isinstance(transactions, (list, tuple)):
            logger.error("save_rejected", reason="transactions must be a list")
            return False

        try:
            entries = [self._as_transaction(item) for item in transactions]
        except (ValidationError, TypeError) as e:
            self._storage_failed("save", e, key=self.transactions_key)
            return False

        return self._write_entries("save", entries)

    def replace_all(
        self,
        transactions: Sequence[Transaction],
        settings: Optional[LedgerSettings] = None,
    ) -> bool:
        """
        Replace the collection (and settings, when given) as one write.

        Either every key is written or, on failure, every key keeps its
        previous value.
        """
        try:
            values = []
            if settings is not None:
                values.append((self.settings_key, json.dumps(settings.to_record())))
            values.append((self.version_key, self._version))
            values.append((self.transactions_key, self._serialize(list(transactions))))
        except (TypeError, ValueError) as e:
            self._storage_failed("replace_all", e)
            return False

        return self._write_keys("replace_all", values)

    @staticmethod
    def _as_transaction(item: Any) -> Transaction:
        if isinstance(item, Transaction):
            return item
        if isinstance(item, Mapping):
            return Transaction.model_validate(item)
        raise TypeError(f"Not a transaction record: {type(item).__name__}")

    @staticmethod
    def _entry_id(entry: Entry) -> Optional[str]:
        if isinstance(entry, Transaction):
            return entry.id
        if isinstance(entry, Mapping):
            return entry.get("id")
        return None

    def _new_id(self, existing: set, now: datetime) -> str:
        new_id = generate_id(now=now)
        while new_id in existing:
            new_id = generate_id(now=now)
        return new_id

    def add(self, fields: Union[TransactionDraft, Mapping[str, Any]]) -> Optional[Transaction]:
        """
        Append a new transaction.

        Assigns the id and both timestamps. Returns the created record,
        or None if the fields do not type-check or persistence fails.
        """
        try:
            draft = (
                fields if isinstance(fields, TransactionDraft)
                else TransactionDraft.model_validate(fields)
            )
        except ValidationError as e:
            logger.error("add_rejected", error=str(e))
            return None

        entries = self._entries()
        now = self._now()
        transaction = Transaction(
            **{name: getattr(draft, name) for name in TransactionDraft.model_fields},
            id=self._new_id({self._entry_id(e) for e in entries}, now),
            created_at=now,
            updated_at=now,
        )
        entries.append(transaction)

        if not self._write_entries("add", entries):
            return None

        logger.info("transaction_added", transaction_id=transaction.id)
        return transaction

    def update(
        self,
        transaction_id: str,
        patch: Union[TransactionPatch, Mapping[str, Any]],
    ) -> Optional[Transaction]:
        """
        Merge patch fields over an existing transaction and bump updated_at.

        Returns the updated record, or None if the id is unknown, the
        merged record does not type-check, or persistence fails.
        """
        if isinstance(patch, TransactionPatch):
            changes = patch.changes()
        else:
            try:
                changes = TransactionPatch.model_validate(
                    {k: v for k, v in patch.items() if k not in _MANAGED_KEYS}
                ).changes()
            except ValidationError as e:
                logger.error("update_rejected", transaction_id=transaction_id, error=str(e))
                return None

        entries = self._entries()
        index = next(
            (
                i for i, entry in enumerate(entries)
                if isinstance(entry, Transaction) and entry.id == transaction_id
            ),
            None,
        )
        if index is None:
            logger.warning("transaction_not_found", transaction_id=transaction_id)
            return None

        existing = entries[index]
        try:
            updated = Transaction.model_validate({
                **existing.model_dump(),
                **changes,
                "updated_at": max(self._now(), existing.created_at),
            })
        except ValidationError as e:
            logger.error("update_rejected", transaction_id=transaction_id, error=str(e))
            return None

        entries[index] = updated
        if not self._write_entries("update", entries):
            return None

        return updated

    def remove(self, transaction_id: str) -> bool:
        """Delete one transaction. False if the id is unknown or the write fails."""
        entries = self._entries()
        remaining = [
            entry for entry in entries
            if not (isinstance(entry, Transaction) and entry.id == transaction_id)
        ]

        if len(remaining) == len(entries):
            logger.warning("transaction_not_found", transaction_id=transaction_id)
            return False

        return self._write_entries("remove", remaining)

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """The matching transaction, or None."""
        return next((t for t in self.load() if t.id == transaction_id), None)

    def clear(self) -> bool:
        """Remove the whole transaction collection. Settings are untouched."""
        try:
            self._backend.remove_item(self.transactions_key)
        except StorageError as e:
            self._storage_failed("clear", e, key=self.transactions_key)
            return False
        return True

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def load_settings(self) -> LedgerSettings:
        """
        Current settings, stored fields overlaid on the defaults.

        Falls back to the defaults when the record is missing, unparsable
        or holds invalid values.
        """
        defaults = LedgerSettings()

        try:
            raw = self._backend.get_item(self.settings_key)
        except StorageError as e:
            self._storage_failed("load_settings", e, key=self.settings_key)
            return defaults

        if not raw:
            return defaults

        try:
            stored = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            self._storage_failed("load_settings", e, key=self.settings_key)
            return defaults

        if not isinstance(stored, dict):
            logger.error("invalid_settings_structure", key=self.settings_key)
            return defaults

        try:
            return LedgerSettings.model_validate({**defaults.to_record(), **stored})
        except ValidationError as e:
            self._storage_failed("load_settings", e, key=self.settings_key)
            return defaults

    def save_settings(self, settings: Union[LedgerSettings, Mapping[str, Any]]) -> bool:
        """Replace the settings record. False if it does not validate or the write fails."""
        try:
            record = (
                settings if isinstance(settings, LedgerSettings)
                else LedgerSettings.model_validate(settings)
            )
            payload = json.dumps(record.to_record())
        except (ValidationError, TypeError, ValueError) as e:
            logger.error("save_settings_rejected", error=str(e))
            return False

        try:
            self._backend.set_item(self.settings_key, payload)
        except StorageError as e:
            self._storage_failed("save_settings", e, key=self.settings_key)
            return False

        return True

    def update_setting(self, key: str, value: Any) -> bool:
        """
        Load, change one setting, save.

        Accepts snake_case or camelCase keys. False for unknown keys and
        values the settings model rejects.
        """
        name = LedgerSettings.field_for_key(key)
        if name is None:
            logger.warning("unknown_setting", key=key)
            return False

        data = self.load_settings().model_dump()
        data[name] = value

        try:
            updated = LedgerSettings.model_validate(data)
        except ValidationError as e:
            logger.error("update_setting_rejected", key=key, error=str(e))
            return False

        return self.save_settings(updated)

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def is_available(self) -> bool:
        """True if the substrate accepts a write and a remove."""
        try:
            self._backend.set_item(_AVAILABILITY_PROBE_KEY, _AVAILABILITY_PROBE_KEY)
            self._backend.remove_item(_AVAILABILITY_PROBE_KEY)
        except StorageError:
            return False
        return True

    def storage_info(self) -> dict[str, Any]:
        """Sizes (UTF-8 bytes) of the persisted values and the transaction count."""
        try:
            transactions = self._backend.get_item(self.transactions_key) or ""
            settings = self._backend.get_item(self.settings_key) or ""
        except StorageError as e:
            self._storage_failed("storage_info", e)
            transactions = settings = ""

        transactions_size = len(transactions.encode("utf-8"))
        settings_size = len(settings.encode("utf-8"))
        total_size = transactions_size + settings_size

        return {
            "transactions_size": transactions_size,
            "settings_size": settings_size,
            "total_size": total_size,
            "transactions_count": len(self.load()),
            "formatted_size": format_bytes(total_size),
        }
