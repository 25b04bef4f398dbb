"""
Regex-Driven Field Validation

Every transaction field has one validator returning a FieldCheck
({valid, error}). validate_transaction runs all of them and returns a
tagged TransactionValidation: either the typed TransactionDraft or the
list of failing fields, never both.

Grammars (full-string matches):
- description: ^\\S+(?:\\s\\S+)*$ and no immediately repeated word
- amount:      ^(0|[1-9]\\d*)(\\.\\d{1,2})?$ with 0 < value <= 9,999,999.99
- date:        ^\\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\\d|3[01])$, a real day,
               not after today, not more than 10 years back
- category:    ^[A-Za-z]+(?:[ -][A-Za-z]+)*$, 3-30 characters

IMPORTANT: Validation NEVER silently fixes the text it rejects.
It reports the first problem per field with a human-readable message.

The module also carries the search helpers that share these patterns:
compile_regex for untrusted search syntax and highlight_matches for
rendering matches safely.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

import structlog
from pydantic import BaseModel

from finance_tracker.models.transaction import (
    FieldCheck,
    TransactionDraft,
    TransactionValidation,
    ValidationIssue,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# PATTERNS
# =============================================================================

# No leading/trailing whitespace, single whitespace between tokens
DESCRIPTION_REGEX = re.compile(r"^\S+(?:\s\S+)*$")

# 0, 1, 10, 100.50, 1234.99 - rejects 01, -5, 100.123
AMOUNT_REGEX = re.compile(r"^(0|[1-9]\d*)(\.\d{1,2})?$", re.ASCII)

DATE_REGEX = re.compile(r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$", re.ASCII)

# Letter runs joined by single spaces or hyphens
CATEGORY_REGEX = re.compile(r"^[A-Za-z]+(?:[ -][A-Za-z]+)*$")

# Back-reference: "the the", "Coffee coffee"
DUPLICATE_WORD_REGEX = re.compile(r"\b(\w+)\s+\1\b", re.IGNORECASE | re.ASCII)

CENTS_REGEX = re.compile(r"\.\d{2}\b", re.ASCII)

BEVERAGE_REGEX = re.compile(r"(coffee|tea|juice|soda|water)", re.IGNORECASE)

EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

PATTERNS: dict[str, re.Pattern] = {
    "DESCRIPTION": DESCRIPTION_REGEX,
    "AMOUNT": AMOUNT_REGEX,
    "DATE": DATE_REGEX,
    "CATEGORY": CATEGORY_REGEX,
    "DUPLICATE_WORD": DUPLICATE_WORD_REGEX,
    "CENTS": CENTS_REGEX,
    "BEVERAGE": BEVERAGE_REGEX,
    "EMAIL": EMAIL_REGEX,
}

MIN_DESCRIPTION_LENGTH = 3
MAX_DESCRIPTION_LENGTH = 100
MIN_CATEGORY_LENGTH = 3
MAX_CATEGORY_LENGTH = 30
MAX_AMOUNT = Decimal("9999999.99")
MAX_DATE_AGE_YEARS = 10
SANITIZED_MAX_LENGTH = 200

# Flag letters accepted from search boxes; g/u/y have no Python meaning
_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "y": 0,
}

_HTML_ESCAPES = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
})


def _full_match(pattern: re.Pattern, text: str) -> bool:
    return pattern.fullmatch(text) is not None


def years_before(day: date, years: int) -> date:
    """
    Same month/day `years` earlier.

    29 February rolls forward to 1 March when the target year has no leap day.
    """
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return date(day.year - years, 3, 1)


# =============================================================================
# FIELD VALIDATORS
# =============================================================================

def validate_description(description: Any) -> FieldCheck:
    """
    Validate the description field.

    Rules:
    - 3 to 100 characters after trimming
    - No leading/trailing whitespace
    - No consecutive whitespace
    - No immediately repeated word (case-insensitive)
    """
    if not description or not isinstance(description, str):
        return FieldCheck.fail("Description is required")

    trimmed = description.strip()

    if len(trimmed) < MIN_DESCRIPTION_LENGTH:
        return FieldCheck.fail("Description must be at least 3 characters long")

    if len(trimmed) > MAX_DESCRIPTION_LENGTH:
        return FieldCheck.fail("Description must not exceed 100 characters")

    if description != trimmed:
        return FieldCheck.fail("Description cannot have leading or trailing spaces")

    if not _full_match(DESCRIPTION_REGEX, description):
        return FieldCheck.fail("Description cannot contain consecutive spaces")

    if DUPLICATE_WORD_REGEX.search(description):
        return FieldCheck.fail("Description contains duplicate words")

    return FieldCheck.ok()


def validate_amount(amount: Any) -> FieldCheck:
    """
    Validate the amount field (string or number).

    Rules:
    - Positive, at most 2 decimal places
    - No leading zero on the integer part
    - Not above 9,999,999.99
    """
    if amount is None or amount == "":
        return FieldCheck.fail("Amount is required")

    amount_str = str(amount).strip()

    if isinstance(amount, bool) or not _full_match(AMOUNT_REGEX, amount_str):
        return FieldCheck.fail(
            "Amount must be a positive number with max 2 decimals (e.g., 12.50)"
        )

    try:
        value = Decimal(amount_str)
    except InvalidOperation:
        return FieldCheck.fail("Amount must be a valid number")

    if value <= 0:
        return FieldCheck.fail("Amount must be greater than 0")

    if value > MAX_AMOUNT:
        return FieldCheck.fail("Amount is too large (max: 9,999,999.99)")

    return FieldCheck.ok()


def validate_date(value: Any, today: Optional[date] = None) -> FieldCheck:
    """
    Validate the date field.

    Rules:
    - YYYY-MM-DD
    - A real calendar day (2024-02-30 is rejected)
    - Not after today (local calendar day)
    - Not more than 10 years before today
    """
    if not value or not isinstance(value, str):
        return FieldCheck.fail("Date is required")

    trimmed = value.strip()

    if not _full_match(DATE_REGEX, trimmed):
        return FieldCheck.fail("Date must be in YYYY-MM-DD format")

    year, month, day = (int(part) for part in trimmed.split("-"))
    try:
        parsed = date(year, month, day)
    except ValueError:
        return FieldCheck.fail("Invalid date (e.g., Feb 30 does not exist)")

    today = today or date.today()

    if parsed > today:
        return FieldCheck.fail("Date cannot be in the future")

    if parsed < years_before(today, MAX_DATE_AGE_YEARS):
        return FieldCheck.fail("Date cannot be more than 10 years in the past")

    return FieldCheck.ok()


def validate_category(category: Any) -> FieldCheck:
    """
    Validate the category field.

    Rules:
    - 3 to 30 characters after trimming
    - Letters only, words joined by a single space or hyphen
    - Starts and ends with a letter
    """
    if not category or not isinstance(category, str):
        return FieldCheck.fail("Category is required")

    trimmed = category.strip()

    if len(trimmed) < MIN_CATEGORY_LENGTH:
        return FieldCheck.fail("Category must be at least 3 characters long")

    if len(trimmed) > MAX_CATEGORY_LENGTH:
        return FieldCheck.fail("Category must not exceed 30 characters")

    if not _full_match(CATEGORY_REGEX, trimmed):
        return FieldCheck.fail("Category can only contain letters, spaces, or hyphens")

    return FieldCheck.ok()


def validate_email(email: Any) -> FieldCheck:
    """Validate an email address (contact form)."""
    if not email or not isinstance(email, str):
        return FieldCheck.fail("Email is required")

    if not _full_match(EMAIL_REGEX, email.strip()):
        return FieldCheck.fail("Invalid email address format")

    return FieldCheck.ok()


def sanitize_input(value: Any) -> str:
    """Trim, drop '<' and '>', and cap at 200 characters."""
    if not isinstance(value, str):
        return ""

    return value.strip().replace("<", "").replace(">", "")[:SANITIZED_MAX_LENGTH]


# =============================================================================
# TRANSACTION VALIDATION
# =============================================================================

def _raw_fields(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump(mode="json")
    if isinstance(raw, Mapping):
        return raw
    return {}


def _build_draft(fields: Mapping[str, Any]) -> TransactionDraft:
    payment_method = fields.get("payment_method", fields.get("paymentMethod"))
    payment_method = sanitize_input(payment_method) or None

    return TransactionDraft(
        description=fields["description"],
        amount=Decimal(str(fields["amount"]).strip()),
        category=fields["category"].strip(),
        date=date.fromisoformat(fields["date"].strip()),
        payment_method=payment_method,
    )


def validate_transaction(
    raw: Any,
    today: Optional[date] = None,
) -> TransactionValidation:
    """
    Validate every field of an unvalidated transaction.

    Args:
        raw: Mapping (or model) with description, amount, category, date
             and an optional payment_method/paymentMethod.
        today: Reference day for the date window (defaults to date.today()).

    Returns:
        TransactionValidation with the typed draft, or the failing fields
        in the order description, amount, category, date.
    """
    fields = _raw_fields(raw)

    checks = (
        ("description", validate_description(fields.get("description"))),
        ("amount", validate_amount(fields.get("amount"))),
        ("category", validate_category(fields.get("category"))),
        ("date", validate_date(fields.get("date"), today=today)),
    )

    errors = [
        ValidationIssue(field=name, message=check.error)
        for name, check in checks
        if not check.valid
    ]

    if errors:
        return TransactionValidation(valid=False, errors=errors)

    return TransactionValidation(valid=True, transaction=_build_draft(fields))


class TransactionValidator:
    """
    Validator seam for the service layer.

    Holds the reference-day provider so that the date window can be
    pinned in tests and in long-running sessions that cross midnight.
    """

    def __init__(
        self,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize validator.

        Args:
            today_provider: Returns the current local day.
                            Defaults to date.today.
        """
        self._today = today_provider or date.today

    def validate(self, raw: Any) -> TransactionValidation:
        """Validate raw transaction fields against today's date window."""
        return validate_transaction(raw, today=self._today())

    def get_user_friendly_summary(
        self,
        result: TransactionValidation,
    ) -> str:
        """
        Multi-line summary of a validation result for display.
        """
        if result.valid:
            return "All checks passed."

        lines = ["Please fix the following:"]
        for issue in result.errors:
            lines.append(f"   • {issue.field.capitalize()}: {issue.message}")

        return "\n".join(lines)


# =============================================================================
# SEARCH HELPERS
# =============================================================================

def compile_regex(pattern: Any, flags: str = "i") -> Optional[re.Pattern]:
    """
    Compile a user-supplied search pattern.

    Returns None for non-text or empty patterns, unknown flag letters
    and invalid syntax. Never raises.
    """
    if not pattern or not isinstance(pattern, str):
        return None

    re_flags = 0
    for letter in flags or "":
        if letter not in _REGEX_FLAGS:
            logger.debug("invalid_regex_flag", flag=letter)
            return None
        re_flags |= _REGEX_FLAGS[letter]

    try:
        return re.compile(pattern, re_flags)
    except (re.error, OverflowError, RecursionError) as e:
        logger.debug("invalid_regex_pattern", pattern=pattern[:200], error=str(e))
        return None


def regex_error(pattern: str, flags: str = "i") -> Optional[str]:
    """The reason compile_regex rejects a pattern, or None if it compiles."""
    if not pattern or not isinstance(pattern, str):
        return "Pattern is required"

    unknown = [letter for letter in flags or "" if letter not in _REGEX_FLAGS]
    if unknown:
        return f"Unknown flag: {unknown[0]}"

    try:
        re.compile(pattern)
    except (re.error, OverflowError, RecursionError) as e:
        return str(e)
    return None


def escape_html(text: str) -> str:
    """Escape & < > \" ' for safe HTML display."""
    return text.translate(_HTML_ESCAPES)


def highlight_matches(text: Any, matcher: Optional[re.Pattern]) -> Any:
    """
    HTML-escape text, then wrap every match of matcher in <mark> tags.

    Missing text or matcher returns the input unchanged. A matcher that
    fails during substitution degrades to the escaped text.
    """
    if not matcher or not text:
        return text

    escaped = escape_html(str(text))

    def _mark(match: re.Match) -> str:
        found = match.group(0)
        return f"<mark>{found}</mark>" if found else found

    try:
        return matcher.sub(_mark, escaped)
    except (re.error, RecursionError, TypeError) as e:
        logger.warning("highlight_failed", error=str(e))
        return escaped


def has_cents(text: Any) -> bool:
    """True when the text contains a two-digit decimal part (.XX)."""
    return CENTS_REGEX.search(str(text)) is not None


def is_beverage(text: Any) -> bool:
    """True when the text mentions coffee, tea, juice, soda or water."""
    return BEVERAGE_REGEX.search(str(text)) is not None


def has_duplicate_words(text: Any) -> bool:
    """True when the text repeats a word back to back."""
    return DUPLICATE_WORD_REGEX.search(str(text)) is not None
