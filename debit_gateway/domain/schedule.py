"""Due-date evaluation and schedule advancing for direct debits"""

from datetime import date, datetime, timedelta
from typing import Optional

from debit_gateway.domain.exceptions import InvalidDateError
from debit_gateway.domain.models import RecurringObligation
from debit_gateway.utils.date_utils import add_months

WEEKLY = "weekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"

FREQUENCIES = (WEEKLY, MONTHLY, QUARTERLY, YEARLY)


def normalize_frequency(frequency: Optional[str]) -> str:
    """Lower-case frequency name, unknown or missing values fall back to monthly"""
    value = (frequency or "").strip().lower()
    return value if value in FREQUENCIES else MONTHLY


def _as_day(value: date) -> date:
    # datetime is a date subclass; strip the time-of-day
    return value.date() if isinstance(value, datetime) else value


def is_due(obligation: RecurringObligation, today: date) -> bool:
    """
    True iff the obligation's next payment date is exactly today.

    Missed days are not picked up later: an obligation dated yesterday is not due.
    """
    if obligation.next_date is None:
        return False
    return _as_day(obligation.next_date) == _as_day(today)


def next_due_date(current: date, frequency: Optional[str]) -> date:
    """
    Next payment date counted from the current scheduled date (not from today).

    Weekly: +7 days, Monthly: +1 month, Quarterly: +3 months, Yearly: +1 year.
    """
    current = _as_day(current)
    period = normalize_frequency(frequency)
    if period == WEEKLY:
        return current + timedelta(days=7)
    if period == QUARTERLY:
        return add_months(current, 3)
    if period == YEARLY:
        return add_months(current, 12)
    return add_months(current, 1)


def days_until(next_date: date, today: date) -> int:
    """Whole calendar days from today to next_date (negative when overdue)"""
    return (_as_day(next_date) - _as_day(today)).days


def parse_obligation_date(value: str) -> date:
    """
    Parse an ISO (2024-03-05) or UK (05/03/2024) date string.

    Raises:
        InvalidDateError: When the string matches neither format
    """
    text = (value or "").strip()
    if not text:
        raise InvalidDateError("No date provided")

    parts = text.split("/")
    try:
        if len(parts) == 3:
            day, month, year = (int(p) for p in parts)
            return date(year, month, day)
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise InvalidDateError(f"Invalid date {value!r}: {e}") from e
