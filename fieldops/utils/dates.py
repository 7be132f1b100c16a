"""
Date helpers: the date-or-month filter used by every read operation.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional

from fieldops.core.exceptions import InvalidInputError


class DateWindow(NamedTuple):
    start: date
    end: date  # inclusive
    label: str


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_window(year: int, month: int) -> DateWindow:
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(date(year, month, 1), date(year, month, last_day), f"{year:04d}-{month:02d}")


def resolve_date_window(
    date_str: Optional[str] = None,
    month_str: Optional[str] = None,
    today: Optional[date] = None
) -> DateWindow:
    """
    Resolve a ``date`` (YYYY-MM-DD) or ``month`` (YYYY-MM) filter to an inclusive window.

    Args:
        date_str: Single ISO date
        month_str: Month in YYYY-MM form
        today: Reference day for the default (current month)

    Returns:
        DateWindow covering the filter

    Raises:
        InvalidInputError: If both filters are given or either is malformed
    """
    if date_str and month_str:
        raise InvalidInputError("Provide either 'date' or 'month', not both")

    if date_str:
        try:
            day = date.fromisoformat(date_str)
        except ValueError:
            raise InvalidInputError(f"Invalid date '{date_str}', expected YYYY-MM-DD")
        return DateWindow(day, day, day.isoformat())

    if month_str:
        try:
            parsed = datetime.strptime(month_str, "%Y-%m")
        except ValueError:
            raise InvalidInputError(f"Invalid month '{month_str}', expected YYYY-MM")
        return month_window(parsed.year, parsed.month)

    reference = today or utcnow().date()
    return month_window(reference.year, reference.month)


def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid time '{value}', expected HH:MM")


def at_time(day: date, value: str) -> datetime:
    return datetime.combine(day, parse_hhmm(value))


def minutes_between(start: datetime, end: datetime) -> int:
    return max(0, round((end - start).total_seconds() / 60))


def add_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)
