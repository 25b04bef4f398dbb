"""
Tests for field validation and the search helpers.

Dates are checked against a fixed "today" (2026-10-19).
"""

import re
from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.validation import (
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
from finance_tracker.validation.validator import years_before


TODAY = date(2026, 10, 19)


class TestDescription:
    """Tests for validate_description."""

    @pytest.mark.parametrize("value", ["Lunch at cafe", "Bus", "a" * 100, "Coffee, then tea"])
    def test_accepts(self, value):
        """Descriptions of 3 to 100 characters with single spaces pass."""
        assert validate_description(value).valid

    @pytest.mark.parametrize("value, message", [
        ("", "Description is required"),
        (None, "Description is required"),
        (42, "Description is required"),
        ("ab", "Description must be at least 3 characters long"),
        ("   ab   ", "Description must be at least 3 characters long"),
        ("a" * 101, "Description must not exceed 100 characters"),
        (" Lunch", "Description cannot have leading or trailing spaces"),
        ("Lunch ", "Description cannot have leading or trailing spaces"),
        ("Lunch  at cafe", "Description cannot contain consecutive spaces"),
        ("the the cafe", "Description contains duplicate words"),
        ("Coffee coffee", "Description contains duplicate words"),
    ])
    def test_rejects(self, value, message):
        """Each description rule reports its own message."""
        check = validate_description(value)
        assert not check.valid
        assert check.error == message

    def test_duplicate_check_compares_ascii_words(self):
        """Word boundaries are ASCII-only, so accented words are not compared whole."""
        assert validate_description("café café").valid
        assert validate_description("Cafe cafe").error == "Description contains duplicate words"


class TestAmount:
    """Tests for validate_amount."""

    @pytest.mark.parametrize("value", ["1", "12.5", "12.50", "0.01", "9999999.99", 15, 12.5, " 3.25 "])
    def test_accepts(self, value):
        """Whole numbers and up to two decimals pass."""
        assert validate_amount(value).valid

    @pytest.mark.parametrize("value", ["01", "-5", "100.123", "1,000", "abc", "1e3", "12.", True])
    def test_rejects_format(self, value):
        """Leading zeros, signs, separators and exponents are rejected."""
        check = validate_amount(value)
        assert not check.valid
        assert check.error.startswith("Amount must be a positive number")

    def test_required(self):
        """Empty and missing amounts are required errors."""
        assert validate_amount("").error == "Amount is required"
        assert validate_amount(None).error == "Amount is required"

    def test_zero_rejected(self):
        """Zero in any spelling is rejected."""
        assert validate_amount("0").error == "Amount must be greater than 0"
        assert validate_amount("0.00").error == "Amount must be greater than 0"

    def test_too_large(self):
        """Amounts past 9,999,999.99 are rejected."""
        assert validate_amount("10000000").error == "Amount is too large (max: 9,999,999.99)"

    def test_non_ascii_digits_rejected(self):
        """Only ASCII digits count as digits."""
        assert not validate_amount("١٢").valid


class TestDate:
    """Tests for validate_date."""

    def test_today_accepted(self):
        """Today is inside the window."""
        assert validate_date("2026-10-19", today=TODAY).valid

    def test_ten_years_back_accepted(self):
        """The same day ten years back is inside the window."""
        assert validate_date("2016-10-19", today=TODAY).valid

    def test_older_than_ten_years_rejected(self):
        """One day before the window is rejected."""
        check = validate_date("2016-10-18", today=TODAY)
        assert check.error == "Date cannot be more than 10 years in the past"

    def test_future_rejected(self):
        """Tomorrow is rejected."""
        assert validate_date("2026-10-20", today=TODAY).error == "Date cannot be in the future"

    @pytest.mark.parametrize("value", ["2026/10/01", "26-10-01", "2026-13-01", "2026-10-32", "2026-1-5"])
    def test_bad_format(self, value):
        """Anything but YYYY-MM-DD is a format error."""
        assert validate_date(value, today=TODAY).error == "Date must be in YYYY-MM-DD format"

    def test_impossible_day(self):
        """Well-formed but impossible days are rejected."""
        check = validate_date("2025-02-30", today=TODAY)
        assert check.error == "Invalid date (e.g., Feb 30 does not exist)"

    def test_required(self):
        """An empty date is a required error."""
        assert validate_date("", today=TODAY).error == "Date is required"

    def test_leap_day_window(self):
        """29 February ten years back rolls to 1 March."""
        assert years_before(date(2028, 2, 29), 10) == date(2018, 3, 1)
        assert years_before(date(2026, 10, 19), 10) == date(2016, 10, 19)


class TestCategory:
    """Tests for validate_category."""

    @pytest.mark.parametrize("value", ["Food", "Eating Out", "Self-care", " Food "])
    def test_accepts(self, value):
        """Letters with single spaces or hyphens pass, after trimming."""
        assert validate_category(value).valid

    @pytest.mark.parametrize("value, message", [
        ("", "Category is required"),
        ("Fo", "Category must be at least 3 characters long"),
        ("A" * 31, "Category must not exceed 30 characters"),
        ("Food2", "Category can only contain letters, spaces, or hyphens"),
        ("Food  Out", "Category can only contain letters, spaces, or hyphens"),
        ("-Food", "Category can only contain letters, spaces, or hyphens"),
    ])
    def test_rejects(self, value, message):
        """Each category rule reports its own message."""
        assert validate_category(value).error == message


class TestEmailAndSanitize:
    """Tests for the contact helpers."""

    def test_email(self):
        """Emails need a dotted domain."""
        assert validate_email("user@example.com").valid
        assert validate_email("user@example").error == "Invalid email address format"
        assert validate_email("").error == "Email is required"

    def test_sanitize_input(self):
        """Angle brackets are stripped and input is capped at 200 characters."""
        assert sanitize_input("  <b>Card</b> ") == "bCard/b"
        assert sanitize_input("x" * 250) == "x" * 200
        assert sanitize_input(None) == ""


class TestValidateTransaction:
    """Tests for whole-transaction validation."""

    def test_valid_transaction(self):
        """A valid record yields a typed draft and no errors."""
        result = validate_transaction({
            "description": "Lunch at cafe",
            "amount": "12.50",
            "category": " Food ",
            "date": "2026-10-18",
            "paymentMethod": " Card ",
        }, today=TODAY)

        assert result.valid
        assert result.errors == []
        assert result.transaction.amount == Decimal("12.50")
        assert result.transaction.category == "Food"
        assert result.transaction.date == date(2026, 10, 18)
        assert result.transaction.payment_method == "Card"

    def test_reports_every_failing_field_in_order(self):
        """Every failing field is reported, in field order."""
        result = validate_transaction({
            "description": "ab",
            "amount": "01",
            "category": "F",
            "date": "2030-01-01",
        }, today=TODAY)

        assert not result.valid
        assert result.transaction is None
        assert [issue.field for issue in result.errors] == [
            "description", "amount", "category", "date",
        ]

    def test_missing_fields(self):
        """An empty record reports each field as required."""
        result = validate_transaction({}, today=TODAY)
        assert result.error_for("description") == "Description is required"
        assert result.error_for("date") == "Date is required"

    def test_validator_uses_today_provider(self):
        """The validator checks dates against its own today."""
        validator = TransactionValidator(today_provider=lambda: date(2026, 10, 17))
        result = validator.validate({
            "description": "Lunch at cafe",
            "amount": "12.50",
            "category": "Food",
            "date": "2026-10-18",
        })
        assert result.error_for("date") == "Date cannot be in the future"

    def test_user_friendly_summary(self):
        """The summary lists one bullet per failing field."""
        validator = TransactionValidator(today_provider=lambda: TODAY)
        result = validator.validate({"description": "Lunch at cafe", "category": "Food", "date": "2026-10-18"})

        summary = validator.get_user_friendly_summary(result)
        assert summary.splitlines() == [
            "Please fix the following:",
            "   • Amount: Amount is required",
        ]


class TestSearchHelpers:
    """Tests for regex compilation and highlighting."""

    def test_compile_regex_default_case_insensitive(self):
        """Patterns match case-insensitively by default."""
        matcher = compile_regex("coffee")
        assert matcher.search("Morning COFFEE")

    def test_compile_regex_without_flags(self):
        """Empty flags give a case-sensitive matcher."""
        assert compile_regex("coffee", "").search("COFFEE") is None

    def test_compile_regex_rejects_bad_input(self):
        """Invalid, empty and missing patterns give None."""
        assert compile_regex("[unclosed") is None
        assert compile_regex("") is None
        assert compile_regex(None) is None
        assert compile_regex("coffee", "q") is None

    def test_compile_regex_ignores_global_flag(self):
        """The g flag is accepted and has no effect."""
        assert compile_regex("tea", "gi") is not None

    def test_regex_error(self):
        """regex_error explains why a pattern cannot be compiled."""
        assert regex_error("coffee") is None
        assert regex_error("") == "Pattern is required"
        assert regex_error("a", "z") == "Unknown flag: z"
        assert regex_error("(") is not None

    def test_escape_html(self):
        """The five HTML special characters are escaped."""
        assert escape_html("<a href=\"x\">Tom's & co</a>") == (
            "&lt;a href=&quot;x&quot;&gt;Tom&#39;s &amp; co&lt;/a&gt;"
        )

    def test_highlight_marks_every_match(self):
        """Every match is wrapped in a mark tag."""
        matcher = compile_regex("tea")
        assert highlight_matches("Tea and tea", matcher) == "<mark>Tea</mark> and <mark>tea</mark>"

    def test_highlight_escapes_before_marking(self):
        """Text is escaped before matches are marked."""
        matcher = compile_regex("b")
        assert highlight_matches("<b>", matcher) == "&lt;<mark>b</mark>&gt;"

    def test_highlight_passthrough(self):
        """Without a matcher or text nothing changes."""
        assert highlight_matches("plain", None) == "plain"
        assert highlight_matches("", compile_regex("x")) == ""

    def test_highlight_skips_empty_matches(self):
        """Zero-width matches are not marked."""
        assert highlight_matches("ab", compile_regex("x*")) == "ab"

    def test_pattern_helpers(self):
        """The named pattern helpers and the PATTERNS table."""
        assert has_cents("Paid 12.50 today")
        assert not has_cents("Paid 12 today")
        assert is_beverage("Iced Tea")
        assert not is_beverage("Bus ticket")
        assert has_duplicate_words("Paid the the bill")
        assert set(PATTERNS) >= {"DESCRIPTION", "AMOUNT", "DATE", "CATEGORY"}
        assert isinstance(PATTERNS["AMOUNT"], re.Pattern)

    def test_duplicate_words_ascii_only(self):
        """Repeated words count only when the repeat is made of ASCII word characters."""
        assert not has_duplicate_words("café café")
        assert has_duplicate_words("cafe cafe")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
