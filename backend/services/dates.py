"""Calendar-day helpers shared by the store and the analytics services.

Every date that is used as a dict key or a query parameter goes through
``to_day`` first, so a day is always a plain ``datetime.date``.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator

from services.errors import ConfigError

DATE_FORMAT = "%Y-%m-%d"

LATEST = "_latest"
EARLIEST = "_earliest"

# Comparison date used for the very first snapshot: nothing existed before it.
ZERO_DATE = date.min

# Three two-week iterations.
TRAILING_WINDOW = timedelta(days=63)


def to_day(value) -> date:
    """Normalize a date, datetime or YYYY-MM-DD string to a calendar day.

    Aware datetimes are converted to UTC before the time of day is dropped.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_day(value)
    raise TypeError(f"cannot convert {type(value).__name__} to a date")


def parse_day(text: str) -> date:
    """Parse a literal YYYY-MM-DD date."""
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise ConfigError(f"Invalid date {text!r}, expected YYYY-MM-DD") from e


def format_day(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
