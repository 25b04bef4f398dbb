"""
Core Data Models for Finance Tracker

These models define the schemas for all data flowing through the ledger.
They are designed to:
1. Separate unvalidated input from records that passed the validator
2. Serialize to the exact persisted/exported JSON shape (camelCase keys)
3. Load older or partial persisted data without crashing

DESIGN DECISION: Transaction checks TYPES only. The field grammar
(description length, amount format, category letters, date window) belongs
to the validator, because imported and legacy records must still load.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Fields every imported transaction record must carry, in reporting order
REQUIRED_TRANSACTION_FIELDS = ("id", "description", "amount", "category", "date")

# Fields only the store may assign
STORE_MANAGED_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _utc(value: dt.datetime) -> dt.datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SortField(str, Enum):
    """Fields a transaction listing can be sorted by."""
    DATE = "date"
    DESCRIPTION = "description"
    AMOUNT = "amount"


class SortOrder(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


class BudgetState(str, Enum):
    """
    Where total spending sits against the monthly budget cap.
    """
    OK = "ok"              # Under 80% of the cap
    WARNING = "warning"    # 80% or more, still under the cap
    REACHED = "reached"    # Exactly at the cap
    OVER = "over"          # Past the cap


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction's user-supplied fields AFTER they passed validation.

    Only the validator builds these from raw input. The store turns a
    draft into a Transaction by assigning an id and timestamps.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    description: str = Field(
        ...,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        description="Amount spent in the base currency"
    )
    category: str = Field(
        ...,
        description="Spending category (e.g., Food, Transport)"
    )
    date: dt.date = Field(
        ...,
        description="Calendar day of the spending event"
    )
    payment_method: Optional[str] = Field(
        default=None,
        description="Free-text payment method, not validated"
    )


class Transaction(TransactionDraft):
    """
    A transaction as held by the store.

    CRITICAL: id, created_at and updated_at are assigned by the store.
    Callers never set them; patches that try to are stripped.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique id assigned on creation"
    )
    created_at: dt.datetime = Field(
        ...,
        description="When the store created the record (UTC)"
    )
    updated_at: dt.datetime = Field(
        ...,
        description="When the store last wrote the record (UTC)"
    )

    @field_validator('created_at', 'updated_at')
    @classmethod
    def ensure_aware(cls, v: dt.datetime) -> dt.datetime:
        return _utc(v)

    @model_validator(mode='after')
    def validate_timestamps(self) -> 'Transaction':
        """updated_at can never precede created_at."""
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt cannot be before createdAt")
        return self

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted JSON record (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)


class TransactionPatch(BaseModel):
    """
    Fields to merge over an existing transaction.

    Every field is optional; only the ones explicitly set are merged.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    description: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    date: Optional[dt.date] = None
    payment_method: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# SETTINGS MODEL
# =============================================================================

class LedgerSettings(BaseModel):
    """
    The user's ledger preferences (singleton record).

    Every field has a default so that older or partial persisted settings
    are overlaid onto a complete record when loaded.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    base_currency: str = Field(
        default="RWF",
        min_length=1,
        max_length=10,
        description="Currency all amounts are recorded in"
    )
    usd_rate: float = Field(
        default=1200,
        gt=0,
        description="Base-currency units per US dollar"
    )
    eur_rate: float = Field(
        default=1300,
        gt=0,
        description="Base-currency units per euro"
    )
    monthly_budget: float = Field(
        default=100000,
        ge=0,
        description="Monthly spending cap in the base currency"
    )
    theme: str = Field(
        default="light",
        description="UI theme name"
    )

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted JSON record (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def field_for_key(cls, key: str) -> Optional[str]:
        """Resolve a snake_case or camelCase key to a field name."""
        for name, info in cls.model_fields.items():
            if key in (name, info.alias):
                return name
        return None


# =============================================================================
# SNAPSHOT MODELS
# =============================================================================

class Snapshot(BaseModel):
    """
    A point-in-time copy of the ledger and settings for export.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    version: str
    export_date: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    transactions: list[Transaction] = Field(default_factory=list)
    settings: LedgerSettings = Field(default_factory=LedgerSettings)

    def to_document(self) -> dict[str, Any]:
        """The export document: {version, exportDate, transactions, settings}."""
        return self.model_dump(mode="json", by_alias=True)


class ImportResult(BaseModel):
    """Outcome of a snapshot import. Imports never raise for bad documents."""

    success: bool
    message: str
    imported: int = Field(default=0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class FieldCheck(BaseModel):
    """Result of validating a single field."""

    valid: bool
    error: str = ""

    @classmethod
    def ok(cls) -> 'FieldCheck':
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> 'FieldCheck':
        return cls(valid=False, error=error)


class ValidationIssue(BaseModel):
    """A single field-level validation failure."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class TransactionValidation(BaseModel):
    """
    Result of validating a whole transaction.

    Exactly one of these holds:
    - valid is True and transaction carries the typed draft
    - valid is False and errors lists every failing field
    """

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    transaction: Optional[TransactionDraft] = None

    @model_validator(mode='after')
    def validate_tagging(self) -> 'TransactionValidation':
        if self.valid and (self.errors or self.transaction is None):
            raise ValueError("A valid result carries a transaction and no errors")
        if not self.valid and (not self.errors or self.transaction is not None):
            raise ValueError("An invalid result carries errors and no transaction")
        return self

    def error_for(self, field: str) -> Optional[str]:
        """Message for a field, if that field failed."""
        for issue in self.errors:
            if issue.field == field:
                return issue.message
        return None


# =============================================================================
# QUERY MODELS
# =============================================================================

class MonthlyTotal(BaseModel):
    """Spending for one calendar month."""

    name: str = Field(..., description="Display name, e.g. 'October 2026'")
    total: Decimal = Decimal("0")


class DashboardMetrics(BaseModel):
    """Headline numbers for the dashboard."""

    total: Decimal
    week_total: Decimal
    count: int = Field(ge=0)
    average: Decimal


class BudgetStatus(BaseModel):
    """Total spending compared against the monthly budget cap."""

    budget: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float = Field(ge=0)
    state: BudgetState

    @property
    def is_over_budget(self) -> bool:
        return self.state == BudgetState.OVER


class CurrencyConversion(BaseModel):
    """Total spending expressed in the base currency, USD and EUR."""

    base_currency: str
    base_total: Decimal
    usd: Decimal
    eur: Decimal
