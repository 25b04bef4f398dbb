"""Validation package."""

from finance_tracker.validation.validator import (
    PATTERNS,
    TransactionValidator,
    compile_regex,
    escape_html,
    has_cents,
    has_duplicate_words,
    highlight_matches,
    is_beverage,
    regex_error,
    sanitize_input,
    validate_amount,
    validate_category,
    validate_date,
    validate_description,
    validate_email,
    validate_transaction,
)

__all__ = [
    "PATTERNS",
    "TransactionValidator",
    "compile_regex",
    "escape_html",
    "has_cents",
    "has_duplicate_words",
    "highlight_matches",
    "is_beverage",
    "regex_error",
    "sanitize_input",
    "validate_amount",
    "validate_category",
    "validate_date",
    "validate_description",
    "validate_email",
    "validate_transaction",
]
