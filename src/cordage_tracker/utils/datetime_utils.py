"""Datetime utilities for timezone-aware UTC timestamps and day arithmetic.

Usage:
    from cordage_tracker.utils.datetime_utils import utc_now, previous_day

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from ..services.exceptions import ValidationError


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def today() -> date:
    """Return the current calendar date (local)."""
    return date.today()


def previous_day(day: date) -> date:
    """Return the calendar day before ``day``."""
    return day - timedelta(days=1)


def as_date(value: Optional[Union[date, datetime, str]]) -> Optional[date]:
    """Normalize a date-like value to a ``date``.

    Accepts ``date``, ``datetime`` (time part dropped) and ISO strings
    ('YYYY-MM-DD', optionally followed by a time part).

    Raises:
        ValidationError: If a string cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError([f"Not a valid date: {value!r}"])
