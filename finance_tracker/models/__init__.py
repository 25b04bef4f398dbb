"""
Data Models Package

This package contains all Pydantic models used in Finance Tracker.
All data flowing through the ledger must conform to these schemas.
"""

from finance_tracker.models.transaction import (
    REQUIRED_TRANSACTION_FIELDS,
    STORE_MANAGED_FIELDS,
    BudgetState,
    BudgetStatus,
    CurrencyConversion,
    DashboardMetrics,
    FieldCheck,
    ImportResult,
    LedgerSettings,
    MonthlyTotal,
    Snapshot,
    SortField,
    SortOrder,
    Transaction,
    TransactionDraft,
    TransactionPatch,
    TransactionValidation,
    ValidationIssue,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "REQUIRED_TRANSACTION_FIELDS",
    "STORE_MANAGED_FIELDS",
    "BudgetState",
    "BudgetStatus",
    "CurrencyConversion",
    "DashboardMetrics",
    "FieldCheck",
    "ImportResult",
    "LedgerSettings",
    "MonthlyTotal",
    "Snapshot",
    "SortField",
    "SortOrder",
    "Transaction",
    "TransactionDraft",
    "TransactionPatch",
    "TransactionValidation",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
