"""Validation helpers shared across budget calendar services."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from .exceptions import ValidationError
from .models import parse_date

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
BI_MONTHLY = "bi-monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"

FREQUENCIES = (DAILY, WEEKLY, MONTHLY, BI_MONTHLY, QUARTERLY, YEARLY)

# Month step for the frequencies that land on a configured day of month.
MONTHLY_FAMILY = {
    MONTHLY: 1,
    BI_MONTHLY: 2,
    QUARTERLY: 3,
}


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a non-negative Decimal with exactly two fraction digits."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    # The sign is carried by isIncome, never by the amount.
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")

    return _quantize_two_decimals(amount)


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_date(value: object, field: str) -> date:
    # datetime subclasses date but does not compare with it.
    if isinstance(value, datetime):
        raise ValidationError(f"{field} must be a civil date without a time")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a date or YYYY-MM-DD string")
    try:
        return parse_date(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be a valid YYYY-MM-DD date") from exc


def validate_bool(value: object, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean")
    return value


def validate_enum(value: object, field: str, allowed: Iterable[str]) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = value.strip().lower()
    if canonical not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return canonical


def validate_day_of_month(value: object, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        day = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be an integer") from exc
    if not 1 <= day <= 31:
        raise ValidationError(f"{field} must be between 1 and 31")
    return day



def validate_month(value: object, field: str) -> Tuple[int, int]:
    """Parse a ``YYYY-MM`` string into a (year, month) pair."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a YYYY-MM string")
    match = MONTH_PATTERN.fullmatch(value.strip())
    if not match:
        raise ValidationError(f"{field} must be a YYYY-MM string")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise ValidationError(f"{field} must name a real month")
    return year, month
