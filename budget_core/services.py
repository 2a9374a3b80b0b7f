"""Framework-agnostic record services and calendar views for the budget calendar."""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from .exceptions import PersistenceError, RecordNotFoundError
from .ledger import (
    CashflowPoint,
    aggregate,
    cashflow,
    collect_events,
    month_bounds,
    resolve_range,
)
from .models import (
    EVENT_SOURCES,
    TRANSACTION,
    BudgetItem,
    DailySummary,
    MonetaryEvent,
    Transaction,
)
from .recurrence import expand
from .storage import JSONStorage
from .validators import (
    FREQUENCIES,
    parse_amount,
    validate_bool,
    validate_date,
    validate_day_of_month,
    validate_enum,
    validate_optional_str,
    validate_required_str,
)

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[List[Any]], None]
SummaryListener = Callable[[List[DailySummary]], None]


def _validate_user_id(user_id: object) -> str:
    return validate_required_str(user_id, "user_id", 128)


def _log_invalid_item(item: BudgetItem, exc: Exception) -> None:
    logger.warning("Skipping budget item %s (%s): %s", item.id, item.name, exc)


class _RecordService:
    """Shared persistence and snapshot subscriptions for one user-scoped collection."""

    collection = ""
    record_type: Any = None

    def __init__(self, storage: JSONStorage, collection: Optional[str] = None) -> None:
        self._storage = storage
        self._collection = collection or self.collection
        self._records: Dict[str, Any] = {}
        self._subscribers: Dict[str, List[SnapshotHandler]] = defaultdict(list)
        self.load()  # Hydrate in-memory cache from persistence on construction.

    # Public API -----------------------------------------------------------
    def add(self, user_id: str, payload: Dict[str, object]) -> Any:
        data = self._validate_payload(payload, user_id=_validate_user_id(user_id))
        record = self.record_type(**data)
        self._records[record.id] = record
        self._commit(record.user_id)
        return record

    def update(self, record_id: str, changes: Dict[str, object]) -> Any:
        existing = self._get_or_raise(record_id)
        # Merge existing serialised data with incoming changes to support partial updates.
        merged_payload = {**existing.to_dict(), **changes}
        data = self._validate_payload(merged_payload, user_id=existing.user_id, current=existing)
        updated = self.record_type(**data)
        self._records[record_id] = updated
        self._commit(updated.user_id)
        return updated

    def delete(self, record_id: str) -> None:
        existing = self._get_or_raise(record_id)
        del self._records[record_id]
        self._commit(existing.user_id)

    def set_excluded(self, record_id: str, excluded: bool = True) -> Any:
        """Flag a record so it shows on the calendar without counting toward EOD totals."""
        existing = self._get_or_raise(record_id)
        updated = dataclasses.replace(existing, excluded_from_eod=excluded)
        self._records[record_id] = updated
        self._commit(updated.user_id)
        return updated

    def get(self, record_id: str) -> Any:
        return self._get_or_raise(record_id)

    def list(self, user_id: str) -> List[Any]:
        return sorted(
            (record for record in self._records.values() if record.user_id == user_id),
            key=self._sort_key,
        )

    def subscribe(self, user_id: str, handler: SnapshotHandler) -> Callable[[], None]:
        """Deliver the user's full snapshot now and after every change.

        Returns a callable that removes the handler again.
        """
        user_id = _validate_user_id(user_id)
        self._subscribers[user_id].append(handler)
        handler(self.list(user_id))

        def unsubscribe() -> None:
            handlers = self._subscribers.get(user_id, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def load(self) -> None:
        raw_records = self._storage.load(self._collection)
        try:
            records = [self.record_type.from_dict(payload) for payload in raw_records]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Malformed record in {self._collection}") from exc
        self._records = {record.id: record for record in records}

    # Internal helpers -----------------------------------------------------
    def _commit(self, user_id: str) -> None:
        self._persist()
        self._notify(user_id)

    def _persist(self) -> None:
        self._storage.save(
            self._collection, [record.to_dict() for record in self._records.values()]
        )

    def _notify(self, user_id: str) -> None:
        handlers = list(self._subscribers.get(user_id, ()))
        if not handlers:
            return
        snapshot = self.list(user_id)
        logger.debug(
            "Notifying %d subscriber(s) of %s for user %s", len(handlers), self._collection, user_id
        )
        for handler in handlers:
            # Each handler gets its own list; snapshots are full replacements.
            try:
                handler(list(snapshot))
            except Exception:
                # The change is already saved; one failing handler must not starve the rest.
                logger.exception(
                    "Subscriber %r of %s failed for user %s", handler, self._collection, user_id
                )

    def _get_or_raise(self, record_id: str) -> Any:
        try:
            return self._records[record_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"{self.record_type.__name__} {record_id} not found") from exc

    def _sort_key(self, record: Any) -> Any:
        raise NotImplementedError

    def _validate_payload(
        self, payload: Dict[str, object], *, user_id: str, current: Optional[Any] = None
    ) -> Dict[str, object]:
        raise NotImplementedError


class TransactionService(_RecordService):
    """Manages one-off transactions."""

    collection = "transactions"
    record_type = Transaction

    def list(self, user_id: str, start: object = None, end: object = None) -> List[Transaction]:
        records = super().list(user_id)
        lower = validate_date(start, "start") if start is not None else None
        upper = validate_date(end, "end") if end is not None else None

        def matches(transaction: Transaction) -> bool:
            if lower and transaction.date < lower:
                return False
            if upper and transaction.date > upper:
                return False
            return True

        return [transaction for transaction in records if matches(transaction)]

    def _sort_key(self, record: Transaction) -> Any:
        return record.date

    def _validate_payload(
        self, payload: Dict[str, object], *, user_id: str, current: Optional[Transaction] = None
    ) -> Dict[str, object]:
        return {
            "id": current.id if current else str(uuid4()),
            "user_id": user_id,
            "date": validate_date(payload.get("date"), "date"),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "is_income": validate_bool(payload.get("isIncome"), "isIncome"),
            "description": validate_optional_str(payload.get("description"), "description", 200),
            "excluded_from_eod": validate_bool(payload.get("excludedFromEOD"), "excludedFromEOD"),
        }


class BudgetItemService(_RecordService):
    """Manages recurring budget items."""

    collection = "budgetItems"
    record_type = BudgetItem

    def _sort_key(self, record: BudgetItem) -> Any:
        return (record.name.lower(), record.start_date)

    def _validate_payload(
        self, payload: Dict[str, object], *, user_id: str, current: Optional[BudgetItem] = None
    ) -> Dict[str, object]:
        frequency = validate_enum(payload.get("frequency"), "frequency", FREQUENCIES)
        use_last_day = validate_bool(payload.get("useLastDayOfMonth"), "useLastDayOfMonth")
        day_of_month = validate_day_of_month(payload.get("dayOfMonth"), "dayOfMonth")
        if day_of_month is None:
            # Entry forms default the day of month to the 1st.
            day_of_month = 1
        return {
            "id": current.id if current else str(uuid4()),
            "user_id": user_id,
            "name": validate_required_str(payload.get("name"), "name", 100),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "is_income": validate_bool(payload.get("isIncome"), "isIncome"),
            "frequency": frequency,
            "start_date": validate_date(payload.get("startDate"), "startDate"),
            "day_of_month": day_of_month,
            "use_last_day_of_month": use_last_day,
            "excluded_from_eod": validate_bool(payload.get("excludedFromEOD"), "excludedFromEOD"),
        }


class CalendarService:
    """Builds calendar and cashflow views from the user's records."""

    def __init__(self, transactions: TransactionService, budget_items: BudgetItemService) -> None:
        self._transactions = transactions
        self._budget_items = budget_items

    def events(self, user_id: str, range_start: object, range_end: object) -> List[MonetaryEvent]:
        start, end = resolve_range(range_start, range_end)
        return collect_events(
            self._transactions.list(user_id),
            self._budget_items.list(user_id),
            start,
            end,
            on_invalid=_log_invalid_item,
        )

    def summaries(self, user_id: str, range_start: object, range_end: object) -> List[DailySummary]:
        start, end = resolve_range(range_start, range_end)
        return aggregate(self.events(user_id, start, end), start, end)

    def month(self, user_id: str, year: int, month: int) -> List[DailySummary]:
        start, end = month_bounds(year, month)
        return self.summaries(user_id, start, end)

    def cashflow(self, user_id: str, year: int, month: int) -> List[CashflowPoint]:
        start, end = month_bounds(year, month)
        return cashflow(self.events(user_id, start, end), year, month)

    def occurrences(self, item_id: str, range_start: object, range_end: object) -> List[MonetaryEvent]:
        return list(expand(self._budget_items.get(item_id), range_start, range_end))

    def exclude(self, source: str, record_id: str, excluded: bool = True) -> Any:
        """Toggle the EOD exclusion flag on the record behind a calendar event."""
        if validate_enum(source, "source", EVENT_SOURCES) == TRANSACTION:
            return self._transactions.set_excluded(record_id, excluded)
        return self._budget_items.set_excluded(record_id, excluded)


class CalendarFeed:
    """Recomputes a fixed calendar range whenever either collection changes.

    The feed keeps the latest full snapshot of each collection and rebuilds
    every summary from scratch on each notification. The listener is first
    called once both collections have delivered a snapshot.
    """

    def __init__(
        self,
        transactions: TransactionService,
        budget_items: BudgetItemService,
        user_id: str,
        range_start: object,
        range_end: object,
        listener: SummaryListener,
    ) -> None:
        self._start, self._end = resolve_range(range_start, range_end)
        self._listener = listener
        self._transactions: Optional[Sequence[Transaction]] = None
        self._budget_items: Optional[Sequence[BudgetItem]] = None
        self._latest: List[DailySummary] = []
        self._unsubscribers = [
            transactions.subscribe(user_id, self._on_transactions),
            budget_items.subscribe(user_id, self._on_budget_items),
        ]

    @property
    def start(self) -> date:
        return self._start

    @property
    def end(self) -> date:
        return self._end

    @property
    def latest(self) -> List[DailySummary]:
        return list(self._latest)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_transactions(self, snapshot: Iterable[Transaction]) -> None:
        self._transactions = list(snapshot)
        self._publish()

    def _on_budget_items(self, snapshot: Iterable[BudgetItem]) -> None:
        self._budget_items = list(snapshot)
        self._publish()

    def _publish(self) -> None:
        if self._transactions is None or self._budget_items is None:
            return
        events = collect_events(
            self._transactions, self._budget_items, self._start, self._end, on_invalid=_log_invalid_item
        )
        self._latest = aggregate(events, self._start, self._end)
        self._listener(list(self._latest))
