"""
Calendar utilities

Pure date math for Monday-start ISO weeks. Nothing here reads the wall
clock: callers pass "now" explicitly.
"""

from typing import Iterator, List, Union
from datetime import date, datetime, timedelta

from weekplan.core.exceptions import InvalidDateError, InvalidRangeError

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DateLike = Union[date, str]


def parse_iso(value: DateLike, field: str = "date") -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidDateError(f"'{value}' is not a valid calendar date", field=field, value=value)


def monday_of(value: DateLike) -> date:
    """Monday of the ISO week containing the date. Sunday belongs to the week before."""
    day = parse_iso(value)
    return day - timedelta(days=day.weekday())


def week_dates(monday: DateLike) -> List[date]:
    start = parse_iso(monday)
    return [start + timedelta(days=i) for i in range(7)]


def date_range(start: DateLike, end: DateLike) -> Iterator[date]:
    """Every date from start to end, inclusive."""
    first = parse_iso(start, "date_start")
    last = parse_iso(end, "date_end")
    if first > last:
        raise InvalidRangeError(
            f"Start date {first.isoformat()} is after end date {last.isoformat()}",
            field="date_start",
            value=first,
        )
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def weekday_name(value: DateLike) -> str:
    return WEEKDAY_NAMES[parse_iso(value).weekday()]


def format_iso(value: DateLike) -> str:
    return parse_iso(value).isoformat()


def format_short(value: DateLike) -> str:
    return parse_iso(value).strftime("%d/%m")


def is_today(value: DateLike, now: Union[date, datetime]) -> bool:
    current = now.date() if isinstance(now, datetime) else now
    return parse_iso(value) == current
