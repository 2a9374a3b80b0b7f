"""Data models for the budget calendar domain."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

__all__ = [
    "BUDGET_OCCURRENCE",
    "BudgetItem",
    "DailySummary",
    "EVENT_SOURCES",
    "MonetaryEvent",
    "TRANSACTION",
    "Transaction",
    "format_amount",
    "format_date",
    "parse_date",
]

TRANSACTION = "transaction"
BUDGET_OCCURRENCE = "budget-occurrence"
EVENT_SOURCES = (TRANSACTION, BUDGET_OCCURRENCE)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` civil date; raises ValueError for anything else."""
    value = value.strip()
    # date.fromisoformat also accepts compact and week forms; only the dashed form crosses the boundary.
    if not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
    return date.fromisoformat(value)


def format_date(value: date) -> str:
    return value.isoformat()


def format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


@dataclass(frozen=True)
class MonetaryEvent:
    """A dated amount fed to the daily ledger, either a transaction or a budget occurrence."""

    id: str
    date: date
    amount: Decimal
    is_income: bool
    source: str
    excluded_from_eod: bool = False
    description: str = ""

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_income else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": format_date(self.date),
            "amount": format_amount(self.amount),
            "isIncome": self.is_income,
            "excludedFromEOD": self.excluded_from_eod,
            "source": self.source,
            "description": self.description,
        }


@dataclass(frozen=True)
class Transaction:
    id: str
    user_id: str
    date: date
    amount: Decimal
    is_income: bool
    description: str = ""
    excluded_from_eod: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the transaction using the store's field names."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": format_date(self.date),
            "description": self.description,
            "amount": format_amount(self.amount),
            "isIncome": self.is_income,
            "excludedFromEOD": self.excluded_from_eod,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Hydrate a Transaction from JSON-native data."""
        return cls(
            id=data["id"],
            user_id=data["userId"],
            date=parse_date(data["date"]),
            amount=Decimal(str(data["amount"])),
            is_income=bool(data.get("isIncome", False)),
            description=data.get("description") or "",
            excluded_from_eod=bool(data.get("excludedFromEOD", False)),
        )


@dataclass(frozen=True)
class BudgetItem:
    id: str
    user_id: str
    name: str
    amount: Decimal
    is_income: bool
    frequency: str
    start_date: date
    day_of_month: Optional[int] = None
    use_last_day_of_month: bool = False
    excluded_from_eod: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the budget item using the store's field names."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "amount": format_amount(self.amount),
            "isIncome": self.is_income,
            "frequency": self.frequency,
            "startDate": format_date(self.start_date),
            "dayOfMonth": self.day_of_month,
            "useLastDayOfMonth": self.use_last_day_of_month,
            "excludedFromEOD": self.excluded_from_eod,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BudgetItem":
        """Hydrate a BudgetItem from JSON-native data."""
        day_of_month = data.get("dayOfMonth")
        return cls(
            id=data["id"],
            user_id=data["userId"],
            name=data["name"],
            amount=Decimal(str(data["amount"])),
            is_income=bool(data.get("isIncome", False)),
            frequency=data["frequency"],
            start_date=parse_date(data["startDate"]),
            day_of_month=int(day_of_month) if day_of_month is not None else None,
            use_last_day_of_month=bool(data.get("useLastDayOfMonth", False)),
            excluded_from_eod=bool(data.get("excludedFromEOD", False)),
        )


@dataclass(frozen=True)
class DailySummary:
    date: date
    total_income: Decimal
    total_expense: Decimal
    running_balance: Decimal
    events: List[MonetaryEvent] = field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def included_events(self) -> List[MonetaryEvent]:
        """Events that count toward the day's totals."""
        return [event for event in self.events if not event.excluded_from_eod]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": format_date(self.date),
            "totalIncome": format_amount(self.total_income),
            "totalExpense": format_amount(self.total_expense),
            "net": format_amount(self.net),
            "runningBalance": format_amount(self.running_balance),
            "events": [event.to_dict() for event in self.events],
        }
