"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
validated write path:
    raw input → validate → store → audit

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction is persisted without passing the validator
- Edits are validated as the full merged record, not the patch alone
- Every write is audited

Reads (queries, search, export) go straight to their components;
the service only owns operations that change the ledger.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models.transaction import (
    ImportResult,
    LedgerSettings,
    Snapshot,
    Transaction,
    ValidationIssue,
)
from finance_tracker.queries import QueryEngine
from finance_tracker.search import SearchDebouncer, SearchFilter
from finance_tracker.services.storage import (
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    LedgerStore,
)
from finance_tracker.snapshot import ImportMode, SnapshotIO
from finance_tracker.validation import TransactionValidator


logger = structlog.get_logger(__name__)

# Patch keys, either spelling, mapped onto validator field names
_EDITABLE_KEYS = {
    "description": "description",
    "amount": "amount",
    "category": "category",
    "date": "date",
    "payment_method": "payment_method",
    "paymentMethod": "payment_method",
}


class LedgerOutcome(BaseModel):
    """Result of a write through the service."""

    success: bool
    message: str
    transaction: Optional[Transaction] = None
    errors: list[ValidationIssue] = Field(default_factory=list)

    def error_for(self, field: str) -> Optional[str]:
        for issue in self.errors:
            if issue.field == field:
                return issue.message
        return None


def _editable_fields(transaction: Transaction) -> dict[str, Any]:
    """A stored transaction as raw validator input."""
    return {
        "description": transaction.description,
        "amount": str(transaction.amount),
        "category": transaction.category,
        "date": transaction.date.isoformat(),
        "payment_method": transaction.payment_method,
    }


def _settings_issues(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in detail["loc"]) or "settings",
            message=detail["msg"],
        )
        for detail in error.errors()
    ]


class LedgerService:
    """
    Validated writes over the ledger.

    Flow for a new transaction:
    1. Validate → every field checked, failures reported together
    2. Store → id and timestamps assigned
    3. Audit → event logged
    """

    def __init__(
        self,
        store: LedgerStore,
        validator: Optional[TransactionValidator] = None,
        snapshots: Optional[SnapshotIO] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._snapshots = snapshots or SnapshotIO(store, audit_logger=audit_logger)

    def _rejected(
        self,
        errors: list[ValidationIssue],
        message: str,
        transaction_id: Optional[str] = None,
    ) -> LedgerOutcome:
        if self._audit_logger:
            self._audit_logger.log_validation_failed(
                issues=[issue.model_dump() for issue in errors],
                transaction_id=transaction_id,
            )
        return LedgerOutcome(success=False, message=message, errors=errors)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def record_transaction(self, raw: Any) -> LedgerOutcome:
        """
        Validate raw form input and append it to the ledger.

        Args:
            raw: Mapping with description, amount, category, date and an
                 optional payment method, all as entered.
        """
        result = self._validator.validate(raw)
        if not result.valid:
            return self._rejected(
                result.errors,
                self._validator.get_user_friendly_summary(result),
            )

        transaction = self._store.add(result.transaction)
        if transaction is None:
            return LedgerOutcome(success=False, message="Failed to save transaction")

        if self._audit_logger:
            self._audit_logger.log_transaction_added(
                transaction_id=transaction.id,
                description=transaction.description,
                amount=str(transaction.amount),
            )

        return LedgerOutcome(
            success=True,
            message="Transaction added successfully",
            transaction=transaction,
        )

    def edit_transaction(
        self,
        transaction_id: str,
        raw_patch: Mapping[str, Any],
    ) -> LedgerOutcome:
        """
        Apply an edit after validating the record it would produce.

        Keys outside the editable fields (id, timestamps, unknown names)
        are ignored.
        """
        existing = self._store.get_by_id(transaction_id)
        if existing is None:
            return LedgerOutcome(success=False, message="Transaction not found")

        changes = {
            _EDITABLE_KEYS[key]: value
            for key, value in raw_patch.items()
            if key in _EDITABLE_KEYS
        }
        merged = {**_editable_fields(existing), **changes}

        result = self._validator.validate(merged)
        if not result.valid:
            return self._rejected(
                result.errors,
                self._validator.get_user_friendly_summary(result),
                transaction_id=transaction_id,
            )

        draft = result.transaction
        updated = self._store.update(
            transaction_id,
            {name: getattr(draft, name) for name in changes},
        )
        if updated is None:
            return LedgerOutcome(success=False, message="Failed to update transaction")

        if self._audit_logger:
            self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                fields=sorted(changes),
            )

        return LedgerOutcome(
            success=True,
            message="Transaction updated successfully",
            transaction=updated,
        )

    def delete_transaction(self, transaction_id: str) -> LedgerOutcome:
        if not self._store.remove(transaction_id):
            return LedgerOutcome(success=False, message="Transaction not found")

        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(transaction_id)

        return LedgerOutcome(success=True, message="Transaction deleted")

    def clear_transactions(self) -> LedgerOutcome:
        """Remove every transaction. Settings are kept."""
        count = len(self._store.load())
        if not self._store.clear():
            return LedgerOutcome(success=False, message="Failed to clear data")

        if self._audit_logger:
            self._audit_logger.log_transactions_cleared(count)

        return LedgerOutcome(success=True, message="All data cleared")

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def save_settings(self, raw: Union[LedgerSettings, Mapping[str, Any]]) -> LedgerOutcome:
        """
        Overlay the given settings fields onto the current ones and save.

        Accepts snake_case or camelCase keys; unknown keys are ignored.
        """
        if isinstance(raw, LedgerSettings):
            raw = raw.model_dump()

        current = self._store.load_settings().model_dump()
        changed = []
        for key, value in raw.items():
            name = LedgerSettings.field_for_key(key)
            if name is not None:
                current[name] = value
                changed.append(name)

        try:
            settings = LedgerSettings.model_validate(current)
        except ValidationError as e:
            return self._rejected(_settings_issues(e), "Invalid settings")

        if not self._store.save_settings(settings):
            return LedgerOutcome(success=False, message="Failed to save settings")

        if self._audit_logger:
            self._audit_logger.log_settings_saved(sorted(set(changed)))

        return LedgerOutcome(success=True, message="Settings saved successfully")

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def import_snapshot(
        self,
        doc: Any,
        mode: Union[ImportMode, str] = ImportMode.REPLACE,
    ) -> ImportResult:
        return self._snapshots.import_snapshot(doc, mode)

    def export_snapshot(self) -> Snapshot:
        return self._snapshots.export_snapshot()


@dataclass
class LedgerComponents:
    """Everything the view layer needs, sharing one store."""
    store: LedgerStore
    queries: QueryEngine
    search: SearchFilter
    snapshots: SnapshotIO
    service: LedgerService
    audit: AuditLogger

    def search_debouncer(self, callback, delay: Optional[float] = None) -> SearchDebouncer:
        """A debouncer using the configured settle delay."""
        if delay is None:
            delay = get_settings().search_debounce_seconds
        return SearchDebouncer(callback, delay=delay)


def create_backend(settings: AppSettings) -> KeyValueBackend:
    """The key-value substrate named by configuration."""
    if settings.storage_backend == "memory":
        return InMemoryBackend()
    return JsonFileBackend(settings.storage_file)


def create_app_components(
    settings: Optional[AppSettings] = None,
    backend: Optional[KeyValueBackend] = None,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Configuration. Defaults to get_settings().
        backend: Substrate to use instead of the configured one
                 (tests pass an InMemoryBackend).

    Returns:
        LedgerComponents sharing a single LedgerStore
    """
    settings = settings or get_settings()
    backend = backend or create_backend(settings)
    audit_logger = AuditLogger()

    store = LedgerStore(
        backend,
        key_prefix=settings.key_prefix,
        version=settings.data_version,
        audit_logger=audit_logger,
    )
    if not store.is_available():
        logger.warning("storage_unavailable", backend=type(backend).__name__)

    snapshots = SnapshotIO(store, audit_logger=audit_logger)

    return LedgerComponents(
        store=store,
        queries=QueryEngine(store),
        search=SearchFilter(store, audit_logger=audit_logger),
        snapshots=snapshots,
        service=LedgerService(
            store,
            validator=TransactionValidator(),
            snapshots=snapshots,
            audit_logger=audit_logger,
        ),
        audit=audit_logger,
    )
