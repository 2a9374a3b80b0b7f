"""Daily income/expense aggregation with a running end-of-day balance."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .exceptions import InvalidRange, InvalidRecurrence, ValidationError
from .models import (
    TRANSACTION,
    BudgetItem,
    DailySummary,
    MonetaryEvent,
    Transaction,
    format_amount,
    format_date,
)
from .recurrence import expand, last_day_of_month
from .validators import validate_date

__all__ = [
    "CashflowPoint",
    "aggregate",
    "cashflow",
    "collect_events",
    "month_bounds",
    "resolve_range",
    "transaction_event",
]

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CashflowPoint:
    date: date
    net: Decimal
    balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": format_date(self.date),
            "net": format_amount(self.net),
            "balance": format_amount(self.balance),
        }


def _range_bound(value: object, field: str) -> date:
    try:
        return validate_date(value, field)
    except ValidationError as exc:
        raise InvalidRange(str(exc)) from exc


def resolve_range(range_start: object, range_end: object) -> Tuple[date, date]:
    """Parse both bounds and reject a range that ends before it starts."""
    start = _range_bound(range_start, "rangeStart")
    end = _range_bound(range_end, "rangeEnd")
    if end < start:
        raise InvalidRange(
            f"rangeEnd {format_date(end)} is earlier than rangeStart {format_date(start)}"
        )
    return start, end


def transaction_event(transaction: Transaction) -> MonetaryEvent:
    return MonetaryEvent(
        id=transaction.id,
        date=transaction.date,
        amount=transaction.amount,
        is_income=transaction.is_income,
        source=TRANSACTION,
        excluded_from_eod=transaction.excluded_from_eod,
        description=transaction.description,
    )


def aggregate(events: Iterable[MonetaryEvent], range_start: object, range_end: object) -> List[DailySummary]:
    """Summarise ``events`` per day across ``[range_start, range_end]``.

    Returns one DailySummary per date in ascending order, including dates
    without events. Events dated outside the range are ignored. Events
    flagged ``excluded_from_eod`` stay in the day's ``events`` but do not
    count toward its totals or the running balance, which starts from zero
    on the day before ``range_start``.
    """
    start, end = resolve_range(range_start, range_end)

    by_date: Dict[date, List[MonetaryEvent]] = defaultdict(list)
    for event in events:
        if start <= event.date <= end:
            by_date[event.date].append(event)

    summaries: List[DailySummary] = []
    running = ZERO
    current = start
    while current <= end:
        day_events = by_date.get(current, [])
        incomes = [event for event in day_events if event.is_income]
        expenses = [event for event in day_events if not event.is_income]
        total_income = sum(
            (event.amount for event in incomes if not event.excluded_from_eod), start=ZERO
        )
        total_expense = sum(
            (event.amount for event in expenses if not event.excluded_from_eod), start=ZERO
        )
        running += total_income - total_expense
        summaries.append(
            DailySummary(
                date=current,
                total_income=total_income,
                total_expense=total_expense,
                running_balance=running,
                events=incomes + expenses,
            )
        )
        # Stop on the last day; stepping past date.max overflows.
        if current == end:
            break
        current += timedelta(days=1)
    return summaries


def collect_events(
    transactions: Iterable[Transaction],
    budget_items: Iterable[BudgetItem],
    range_start: object,
    range_end: object,
    on_invalid: Optional[Callable[[BudgetItem, InvalidRecurrence], None]] = None,
) -> List[MonetaryEvent]:
    """Flatten transactions and expanded budget items into one event list.

    Without ``on_invalid`` a malformed budget item raises InvalidRecurrence.
    With it, the item is reported to the callback and left out.
    """
    events = [transaction_event(transaction) for transaction in transactions]
    for item in budget_items:
        try:
            events.extend(expand(item, range_start, range_end))
        except InvalidRecurrence as exc:
            if on_invalid is None:
                raise
            on_invalid(item, exc)
    return events


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12:
        raise InvalidRange(f"month must be between 1 and 12 (got {month})")
    if not 1 <= year <= 9999:
        raise InvalidRange(f"year must be between 1 and 9999 (got {year})")
    return date(year, month, 1), date(year, month, last_day_of_month(year, month))


def cashflow(events: Iterable[MonetaryEvent], year: int, month: int) -> List[CashflowPoint]:
    """Cumulative net cashflow for every day of the given month."""
    start, end = month_bounds(year, month)
    return [
        CashflowPoint(date=summary.date, net=summary.net, balance=summary.running_balance)
        for summary in aggregate(events, start, end)
    ]
