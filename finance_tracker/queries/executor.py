"""
Query Engine

DESIGN DECISION: Queries are READ-ONLY and DETERMINISTIC.
Every query loads the store's current snapshot and computes over a copy;
nothing here writes back or keeps derived state between calls.

Money is summed as Decimal so that totals match the stored amounts
exactly (12.10 + 0.20 is 12.30, not 12.299999...).
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Union

from finance_tracker.models.transaction import (
    BudgetState,
    BudgetStatus,
    CurrencyConversion,
    DashboardMetrics,
    MonthlyTotal,
    SortField,
    SortOrder,
    Transaction,
)
from finance_tracker.services.storage import LedgerStore


DayLike = Union[date, datetime, str]

BUDGET_WARNING_PERCENT = 80.0
_CENTS = Decimal("0.01")


def parse_day(value: DayLike) -> date:
    """
    Coerce a date, datetime or YYYY-MM-DD string to a date.

    Raises:
        ValueError: If a string is not an ISO calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


class QueryEngine:
    """
    Aggregations and filters over the ledger.

    GUARANTEES:
    - Only reads the store, never mutates it
    - Returns real stored data, zero-filled where a series needs it
    """

    def __init__(
        self,
        store: LedgerStore,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        self._store = store
        self._today = today_provider or date.today

    def _transactions(self) -> list[Transaction]:
        return self._store.load()

    # =========================================================================
    # FILTERS
    # =========================================================================

    def get_by_date_range(self, start: DayLike, end: DayLike) -> list[Transaction]:
        """Transactions dated between start and end, both inclusive."""
        start_day = parse_day(start)
        end_day = parse_day(end)
        return [t for t in self._transactions() if start_day <= t.date <= end_day]

    def get_by_category(self, category: str) -> list[Transaction]:
        """Transactions whose category equals the name exactly."""
        return [t for t in self._transactions() if t.category == category]

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    def calculate_total(
        self,
        transactions: Optional[Iterable[Transaction]] = None,
    ) -> Decimal:
        """
        Sum of amounts.

        Uses the whole ledger when no transactions are given. An explicit
        empty list sums to zero.
        """
        if transactions is None:
            transactions = self._transactions()
        return sum((t.amount for t in transactions), Decimal("0"))

    def spending_by_category(self) -> dict[str, Decimal]:
        """Category -> total, in the order each category first appears."""
        totals: dict[str, Decimal] = {}
        for t in self._transactions():
            totals[t.category] = totals.get(t.category, Decimal("0")) + t.amount
        return totals

    def spending_for_last_days(
        self,
        days: int = 7,
        today: Optional[date] = None,
    ) -> dict[str, Decimal]:
        """
        Daily totals for the last `days` calendar days ending today.

        Every day is present (zero when nothing was spent). Keys are ISO
        dates, oldest first. A transaction counts only when its date is
        exactly one of the keys.
        """
        if days < 1:
            return {}

        today = today or self._today()
        daily = {
            (today - timedelta(days=offset)).isoformat(): Decimal("0")
            for offset in range(days - 1, -1, -1)
        }

        for t in self._transactions():
            key = t.date.isoformat()
            if key in daily:
                daily[key] += t.amount

        return daily

    def monthly_totals(self, limit: int = 6) -> dict[str, MonthlyTotal]:
        """
        YYYY-MM -> {name, total}, newest month first, at most `limit` months.
        """
        months: dict[str, MonthlyTotal] = {}
        for t in self._transactions():
            key = t.date.strftime("%Y-%m")
            if key not in months:
                months[key] = MonthlyTotal(name=t.date.strftime("%B %Y"))
            months[key].total += t.amount

        newest_first = sorted(months, reverse=True)[:max(limit, 0)]
        return {key: months[key] for key in newest_first}

    def sort_transactions(
        self,
        field: Union[SortField, str] = SortField.DATE,
        order: Union[SortOrder, str] = SortOrder.DESC,
    ) -> list[Transaction]:
        """
        A sorted copy of the ledger.

        Unknown fields return the insertion-order copy.
        """
        transactions = self._transactions()

        try:
            field = SortField(field)
        except ValueError:
            return transactions

        keys = {
            SortField.DATE: lambda t: t.date,
            SortField.DESCRIPTION: lambda t: t.description.lower(),
            SortField.AMOUNT: lambda t: t.amount,
        }
        reverse = SortOrder(order) == SortOrder.DESC
        return sorted(transactions, key=keys[field], reverse=reverse)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def dashboard_metrics(self, today: Optional[date] = None) -> DashboardMetrics:
        """Total, last-7-days total, count and average spend."""
        today = today or self._today()
        transactions = self._transactions()

        total = self.calculate_total(transactions)
        week_start = today - timedelta(days=7)
        week_total = self.calculate_total(
            t for t in transactions if week_start <= t.date <= today
        )
        count = len(transactions)
        average = (total / count).quantize(_CENTS, ROUND_HALF_UP) if count else Decimal("0")

        return DashboardMetrics(
            total=total,
            week_total=week_total,
            count=count,
            average=average,
        )

    def budget_status(self) -> BudgetStatus:
        """Total spending against the monthly budget cap in settings."""
        settings = self._store.load_settings()
        budget = Decimal(str(settings.monthly_budget))
        spent = self.calculate_total()
        remaining = budget - spent

        if budget > 0:
            percentage = float(spent / budget * 100)
        else:
            percentage = 0.0 if spent == 0 else 100.0

        if remaining < 0:
            state = BudgetState.OVER
        elif remaining == 0:
            state = BudgetState.REACHED
        elif percentage >= BUDGET_WARNING_PERCENT:
            state = BudgetState.WARNING
        else:
            state = BudgetState.OK

        return BudgetStatus(
            budget=budget,
            spent=spent,
            remaining=remaining,
            percentage=round(percentage, 2),
            state=state,
        )

    def currency_conversion(self) -> CurrencyConversion:
        """The ledger total divided by the stored USD and EUR rates."""
        settings = self._store.load_settings()
        total = self.calculate_total()

        def convert(rate: float) -> Decimal:
            return (total / Decimal(str(rate))).quantize(_CENTS, ROUND_HALF_UP)

        return CurrencyConversion(
            base_currency=settings.base_currency,
            base_total=total,
            usd=convert(settings.usd_rate),
            eur=convert(settings.eur_rate),
        )
