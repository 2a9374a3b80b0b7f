"""Console interface for the budget calendar."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from budget_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budget_core.models import BUDGET_OCCURRENCE, TRANSACTION, DailySummary, parse_date
from budget_core.services import BudgetItemService, CalendarService, TransactionService
from budget_core.storage import JSONStorage
from budget_core.validators import FREQUENCIES, MONTHLY_FAMILY, validate_month

DEFAULT_USER = "local"


def _parse_date(value: str) -> str:
    try:
        parse_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc
    return value


def _parse_month(value: str) -> Tuple[int, int]:
    try:
        return validate_month(value, "month")
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid month '{value}'. Expected format YYYY-MM."
        ) from exc


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a finite number")
    if amount < 0:
        raise argparse.ArgumentTypeError("Amount must not be negative")
    return value


def _load_services(data_dir: Path) -> Tuple[CalendarService, TransactionService, BudgetItemService]:
    storage = JSONStorage(data_dir)
    transactions = TransactionService(storage)
    budget_items = BudgetItemService(storage)
    return CalendarService(transactions, budget_items), transactions, budget_items


def _signed(amount: str, is_income: bool) -> str:
    return f"{'+' if is_income else '-'}{amount}"


def _format_transaction(transaction: Dict[str, Any]) -> str:
    excluded = " (excluded from EOD)" if transaction["excludedFromEOD"] else ""
    return (
        f"[{transaction['id']}] {transaction['date']} "
        f"{_signed(transaction['amount'], transaction['isIncome'])}{excluded}\n"
        f"  Description: {transaction.get('description') or '-'}\n"
    )


def _format_budget_item(item: Dict[str, Any]) -> str:
    if item["frequency"] in MONTHLY_FAMILY:
        day = "last day" if item["useLastDayOfMonth"] else f"day {item['dayOfMonth']}"
        schedule = f"{item['frequency']} on {day}"
    else:
        schedule = item["frequency"]
    excluded = " (excluded from EOD)" if item["excludedFromEOD"] else ""
    return (
        f"[{item['id']}] {item['name']} {_signed(item['amount'], item['isIncome'])}{excluded}\n"
        f"  Schedule: {schedule} from {item['startDate']}\n"
    )


def _format_summary(summary: DailySummary) -> str:
    lines = [
        f"{summary.date.isoformat()}  income {summary.total_income:.2f}  "
        f"expense {summary.total_expense:.2f}  EOD {summary.running_balance:.2f}"
    ]
    for event in summary.events:
        marker = " (excluded)" if event.excluded_from_eod else ""
        lines.append(
            f"    {_signed(f'{event.amount:.2f}', event.is_income)} {event.description or '-'}{marker}"
        )
    return "\n".join(lines)


def _cleaned(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _owned(service: Any, record_id: str, user: str) -> Any:
    record = service.get(record_id)
    # Another user's record is reported as missing, the same as in the API.
    if record.user_id != user:
        raise RecordNotFoundError(f"{type(record).__name__} {record_id} not found")
    return record


def handle_transaction(args: argparse.Namespace, service: TransactionService, calendar: CalendarService) -> None:
    if args.command == "add":
        payload = {
            "date": args.date,
            "amount": args.amount,
            "isIncome": args.income,
            "description": args.description,
        }
        transaction = service.add(args.user, payload)
        print("Transaction added:\n" + _format_transaction(transaction.to_dict()))
    elif args.command == "list":
        transactions = service.list(args.user, start=args.start, end=args.end)
        if not transactions:
            print("No transactions found.")
            return
        print(f"Found {len(transactions)} transactions:")
        for transaction in transactions:
            print(_format_transaction(transaction.to_dict()))
    elif args.command == "edit":
        changes = _cleaned({
            "date": args.date,
            "amount": args.amount,
            "isIncome": args.income,
            "description": args.description,
        })
        _owned(service, args.id, args.user)
        transaction = service.update(args.id, changes)
        print("Transaction updated:\n" + _format_transaction(transaction.to_dict()))
    elif args.command == "delete":
        _owned(service, args.id, args.user)
        service.delete(args.id)
        print(f"Transaction {args.id} deleted.")
    elif args.command == "exclude":
        _owned(service, args.id, args.user)
        transaction = calendar.exclude(TRANSACTION, args.id, not args.include)
        print("Transaction updated:\n" + _format_transaction(transaction.to_dict()))


def handle_budget(args: argparse.Namespace, service: BudgetItemService, calendar: CalendarService) -> None:
    if args.command == "add":
        payload = {
            "name": args.name,
            "amount": args.amount,
            "isIncome": args.income,
            "frequency": args.frequency,
            "startDate": args.start_date,
            "dayOfMonth": args.day_of_month,
            "useLastDayOfMonth": args.last_day,
        }
        item = service.add(args.user, payload)
        print("Budget item added:\n" + _format_budget_item(item.to_dict()))
    elif args.command == "list":
        items = service.list(args.user)
        if not items:
            print("No budget items found.")
            return
        print(f"Found {len(items)} budget items:")
        for item in items:
            print(_format_budget_item(item.to_dict()))
    elif args.command == "edit":
        changes = _cleaned({
            "name": args.name,
            "amount": args.amount,
            "isIncome": args.income,
            "frequency": args.frequency,
            "startDate": args.start_date,
            "dayOfMonth": args.day_of_month,
            "useLastDayOfMonth": args.last_day,
        })
        _owned(service, args.id, args.user)
        item = service.update(args.id, changes)
        print("Budget item updated:\n" + _format_budget_item(item.to_dict()))
    elif args.command == "delete":
        _owned(service, args.id, args.user)
        service.delete(args.id)
        print(f"Budget item {args.id} deleted.")
    elif args.command == "exclude":
        _owned(service, args.id, args.user)
        item = calendar.exclude(BUDGET_OCCURRENCE, args.id, not args.include)
        print("Budget item updated:\n" + _format_budget_item(item.to_dict()))
    elif args.command == "occurrences":
        _owned(service, args.id, args.user)
        occurrences = calendar.occurrences(args.id, args.start, args.end)
        if not occurrences:
            print("No occurrences in range.")
            return
        for event in occurrences:
            print(f"{event.date.isoformat()} {_signed(f'{event.amount:.2f}', event.is_income)}")


def handle_calendar(args: argparse.Namespace, calendar: CalendarService) -> None:
    if args.month:
        year, month = args.month
        summaries = calendar.month(args.user, year, month)
    elif args.start and args.end:
        summaries = calendar.summaries(args.user, args.start, args.end)
    else:
        raise ValidationError("calendar needs either --month or both --start and --end")
    for summary in summaries:
        print(_format_summary(summary))


def handle_cashflow(args: argparse.Namespace, calendar: CalendarService) -> None:
    if args.month:
        year, month = args.month
    else:
        today = date.today()
        year, month = today.year, today.month
    points = calendar.cashflow(args.user, year, month)
    print(f"Cashflow for {year:04d}-{month:02d}:")
    for point in points:
        print(f"  {point.date.isoformat()}  net {point.net:>10.2f}  balance {point.balance:>10.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Budget Calendar CLI")
    parser.add_argument(
        "--data-dir",
        default=os.getenv("BUDGET_CALENDAR_DATA_DIR", "data"),
        type=Path,
        help="Directory to store JSON data (default: $BUDGET_CALENDAR_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--user",
        default=DEFAULT_USER,
        help=f"User identifier records are scoped to (default: {DEFAULT_USER})",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    tx_parser = subparsers.add_parser("transaction", help="Manage transactions")
    tx_sub = tx_parser.add_subparsers(dest="command", required=True)

    tx_add = tx_sub.add_parser("add", help="Add a new transaction")
    tx_add.add_argument("date", type=_parse_date)
    tx_add.add_argument("amount", type=_parse_amount)
    tx_add.add_argument("--income", action="store_true", help="Record as income instead of expense")
    tx_add.add_argument("--description")

    tx_list = tx_sub.add_parser("list", help="List transactions")
    tx_list.add_argument("--start", type=_parse_date)
    tx_list.add_argument("--end", type=_parse_date)

    tx_edit = tx_sub.add_parser("edit", help="Edit an existing transaction")
    tx_edit.add_argument("id")
    tx_edit.add_argument("--date", type=_parse_date)
    tx_edit.add_argument("--amount", type=_parse_amount)
    tx_edit.add_argument("--income", action=argparse.BooleanOptionalAction, default=None)
    tx_edit.add_argument("--description")

    tx_delete = tx_sub.add_parser("delete", help="Delete a transaction")
    tx_delete.add_argument("id")

    tx_exclude = tx_sub.add_parser("exclude", help="Remove a transaction from EOD totals")
    tx_exclude.add_argument("id")
    tx_exclude.add_argument("--include", action="store_true", help="Count it toward EOD totals again")

    budget_parser = subparsers.add_parser("budget", help="Manage recurring budget items")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)

    budget_add = budget_sub.add_parser("add", help="Add a new budget item")
    budget_add.add_argument("name")
    budget_add.add_argument("amount", type=_parse_amount)
    budget_add.add_argument("frequency", choices=FREQUENCIES)
    budget_add.add_argument("start_date", type=_parse_date)
    budget_add.add_argument("--income", action="store_true", help="Record as income instead of expense")
    budget_add.add_argument("--day-of-month", type=int)
    budget_add.add_argument("--last-day", action="store_true", help="Occur on the last day of the month")

    budget_sub.add_parser("list", help="List budget items")

    budget_edit = budget_sub.add_parser("edit", help="Edit an existing budget item")
    budget_edit.add_argument("id")
    budget_edit.add_argument("--name")
    budget_edit.add_argument("--amount", type=_parse_amount)
    budget_edit.add_argument("--frequency", choices=FREQUENCIES)
    budget_edit.add_argument("--start-date", type=_parse_date)
    budget_edit.add_argument("--income", action=argparse.BooleanOptionalAction, default=None)
    budget_edit.add_argument("--day-of-month", type=int)
    budget_edit.add_argument("--last-day", action=argparse.BooleanOptionalAction, default=None)

    budget_delete = budget_sub.add_parser("delete", help="Delete a budget item")
    budget_delete.add_argument("id")

    budget_exclude = budget_sub.add_parser("exclude", help="Remove a budget item from EOD totals")
    budget_exclude.add_argument("id")
    budget_exclude.add_argument("--include", action="store_true", help="Count it toward EOD totals again")

    budget_occurrences = budget_sub.add_parser("occurrences", help="List a budget item's occurrences")
    budget_occurrences.add_argument("id")
    budget_occurrences.add_argument("start", type=_parse_date)
    budget_occurrences.add_argument("end", type=_parse_date)

    calendar_parser = subparsers.add_parser("calendar", help="Show daily totals with EOD balance")
    calendar_parser.add_argument("--month", type=_parse_month, help="Month as YYYY-MM")
    calendar_parser.add_argument("--start", type=_parse_date)
    calendar_parser.add_argument("--end", type=_parse_date)

    cashflow_parser = subparsers.add_parser("cashflow", help="Show cumulative cashflow for a month")
    cashflow_parser.add_argument("--month", type=_parse_month, help="Month as YYYY-MM (default: current)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        calendar, transaction_service, budget_service = _load_services(args.data_dir)
        if args.entity == "transaction":
            handle_transaction(args, transaction_service, calendar)
        elif args.entity == "budget":
            handle_budget(args, budget_service, calendar)
        elif args.entity == "calendar":
            handle_calendar(args, calendar)
        elif args.entity == "cashflow":
            handle_cashflow(args, calendar)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
