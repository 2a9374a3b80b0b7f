"""Core budget calendar logic: recurrence expansion, daily ledger and record services."""

from .exceptions import (
    InvalidRange,
    InvalidRecurrence,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .ledger import CashflowPoint, aggregate, cashflow, collect_events, month_bounds
from .models import BudgetItem, DailySummary, MonetaryEvent, Transaction
from .recurrence import Occurrences, expand
from .services import BudgetItemService, CalendarFeed, CalendarService, TransactionService
from .storage import JSONStorage

__all__ = [
    "BudgetItem",
    "BudgetItemService",
    "CalendarFeed",
    "CalendarService",
    "CashflowPoint",
    "DailySummary",
    "InvalidRange",
    "InvalidRecurrence",
    "JSONStorage",
    "MonetaryEvent",
    "Occurrences",
    "PersistenceError",
    "RecordNotFoundError",
    "Transaction",
    "TransactionService",
    "ValidationError",
    "aggregate",
    "cashflow",
    "collect_events",
    "expand",
    "month_bounds",
]
