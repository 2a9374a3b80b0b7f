"""Expansion of recurring budget items into dated occurrences."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterator

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidRecurrence, ValidationError
from .models import BUDGET_OCCURRENCE, BudgetItem, MonetaryEvent, format_date
from .validators import DAILY, FREQUENCIES, MONTHLY_FAMILY, WEEKLY, YEARLY, validate_date

__all__ = ["Occurrences", "expand", "last_day_of_month"]


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _as_date(value: object, field: str) -> date:
    try:
        return validate_date(value, field)
    except ValidationError as exc:
        raise InvalidRecurrence(str(exc)) from exc


def _months_between(earlier: date, later: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


class Occurrences:
    """Lazy view over the occurrences of one budget item inside a date window.

    Every iteration recomputes the sequence from the item, so the same
    object can be iterated any number of times with identical results.
    """

    def __init__(self, item: BudgetItem, start_date: date, window_start: date, window_end: date) -> None:
        self._item = item
        self._start_date = start_date
        self._window_start = window_start
        self._window_end = window_end

    def __iter__(self) -> Iterator[MonetaryEvent]:
        for day in self.dates():
            yield MonetaryEvent(
                id=f"{self._item.id}@{format_date(day)}",
                date=day,
                amount=self._item.amount,
                is_income=self._item.is_income,
                source=BUDGET_OCCURRENCE,
                excluded_from_eod=self._item.excluded_from_eod,
                description=self._item.name,
            )

    def __repr__(self) -> str:
        return (
            f"Occurrences(item={self._item.id!r}, "
            f"window={format_date(self._window_start)}..{format_date(self._window_end)})"
        )

    def dates(self) -> Iterator[date]:
        """Yield occurrence dates in ascending order."""
        if self._window_end < self._window_start:
            return
        frequency = self._item.frequency
        if frequency == DAILY:
            yield from self._daily()
        elif frequency == WEEKLY:
            yield from self._weekly()
        elif frequency in MONTHLY_FAMILY:
            yield from self._monthly(MONTHLY_FAMILY[frequency])
        elif frequency == YEARLY:
            yield from self._yearly()

    def _daily(self) -> Iterator[date]:
        current = self._window_start
        while True:
            yield current
            # Stepping past date.max overflows, so stop on the last day itself.
            if current >= self._window_end:
                return
            current += timedelta(days=1)

    def _weekly(self) -> Iterator[date]:
        # Window start never precedes start_date, so the offset is non-negative.
        offset = (self._window_start - self._start_date).days
        gap = -offset % 7
        if (self._window_end - self._window_start).days < gap:
            return
        current = self._window_start + timedelta(days=gap)
        while True:
            yield current
            if (self._window_end - current).days < 7:
                return
            current += timedelta(days=7)

    def _monthly(self, step: int) -> Iterator[date]:
        anchor = self._start_date.replace(day=1)
        months_ahead = _months_between(anchor, self._window_start)
        index = -(-months_ahead // step)
        if _months_between(anchor, self._window_end) < index * step:
            return
        month = anchor + relativedelta(months=index * step)
        while True:
            occurrence = month.replace(day=self._configured_day(month.year, month.month))
            if self._window_start <= occurrence <= self._window_end:
                yield occurrence
            # The next month would start after the window, possibly past year 9999.
            if _months_between(month, self._window_end) < step:
                return
            index += 1
            month = anchor + relativedelta(months=index * step)

    def _configured_day(self, year: int, month: int) -> int:
        last = last_day_of_month(year, month)
        if self._item.use_last_day_of_month:
            return last
        # Clamp into the month; a 31st never rolls over into the next month.
        return min(self._item.day_of_month, last)

    def _yearly(self) -> Iterator[date]:
        years_ahead = self._window_start.year - self._start_date.year
        while True:
            # relativedelta clamps Feb 29 to Feb 28 in common years.
            occurrence = self._start_date + relativedelta(years=years_ahead)
            if occurrence > self._window_end:
                return
            if occurrence >= self._window_start:
                yield occurrence
            if occurrence.year >= self._window_end.year:
                return
            years_ahead += 1


def expand(item: BudgetItem, range_start: object, range_end: object) -> Occurrences:
    """Return the occurrences of ``item`` within ``[range_start, range_end]``.

    The recurrence is validated eagerly and raises InvalidRecurrence for an
    unknown frequency, a missing or out-of-range day of month where one is
    required, or dates that are not valid ``YYYY-MM-DD`` civil dates.
    Occurrences never precede the item's start date. A window that ends
    before it starts simply yields nothing.
    """
    if item.frequency not in FREQUENCIES:
        raise InvalidRecurrence(
            f"frequency must be one of: {', '.join(FREQUENCIES)} (got {item.frequency!r})"
        )
    if item.frequency in MONTHLY_FAMILY and not item.use_last_day_of_month:
        day = item.day_of_month
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
            raise InvalidRecurrence(f"dayOfMonth must be between 1 and 31 (got {day!r})")

    start_date = _as_date(item.start_date, "startDate")
    window_start = max(start_date, _as_date(range_start, "rangeStart"))
    window_end = _as_date(range_end, "rangeEnd")
    return Occurrences(item, start_date, window_start, window_end)
