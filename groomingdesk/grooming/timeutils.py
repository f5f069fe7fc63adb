"""Date and time helpers shared by the scheduling core.

Times of day are handled as minutes since midnight so end-time arithmetic never
touches wall-clock datetimes.
"""

from __future__ import annotations

import datetime as dt
import math
import re

from .errors import ValidationError

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str, *, field: str = "time") -> int:
    """Return the minutes since midnight for an ``HH:mm`` string."""

    match = _HHMM.match((value or "").strip())
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:mm", field=field)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 24 or minutes > 59 or (hours == 24 and minutes):
        raise ValidationError(f"Invalid time '{value}', expected HH:mm", field=field)
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:mm`` (hours may exceed 23)."""

    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def calculate_end_time(start_time: str, duration: int) -> str:
    return format_hhmm(parse_hhmm(start_time) + duration)


def parse_date(value: str, *, field: str = "date") -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", field=field) from None


def today_string(now: dt.datetime | None = None) -> str:
    return (now or dt.datetime.now()).date().isoformat()


def isoformat(moment: dt.datetime) -> str:
    return moment.isoformat(timespec="seconds")


def parse_timestamp(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    return dt.datetime.fromisoformat(value)


def minutes_between(start: dt.datetime, end: dt.datetime) -> int:
    """Whole minutes from ``start`` to ``end``, rounding halves up."""

    return int(math.floor((end - start).total_seconds() / 60 + 0.5))


def describe_duration(minutes: int) -> str:
    """Human readable duration, e.g. ``1 hr 30 min``."""

    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours} hr {mins} min"
    if hours:
        return f"{hours} hr"
    return f"{mins} min"
