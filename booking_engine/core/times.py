# booking_engine/core/times.py
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """
    "09:30" -> 570. Raises ValueError on malformed input or out-of-range values.
    "24:00" is accepted as end-of-day.
    """
    m = _HHMM.match(value.strip())
    if not m:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(m.group(1)), int(m.group(2))
    total = hours * 60 + minutes
    if minutes >= 60 or total > MINUTES_PER_DAY:
        raise ValueError(f"time out of range: {value!r}")
    return total


def to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def coerce_minutes(value) -> int:
    """Accept minute-of-day ints, "HH:MM" strings or datetime.time."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a time")
    if isinstance(value, int):
        if not 0 <= value <= MINUTES_PER_DAY:
            raise ValueError(f"minute of day out of range: {value}")
        return value
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, str):
        return parse_hhmm(value)
    raise ValueError(f"unsupported time value: {value!r}")


def at_minute(day: date, minutes: int) -> datetime:
    """Naive local datetime for a minute of a calendar day."""
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


def overlaps(s1: int, e1: int, s2: int, e2: int) -> bool:
    """Half-open [s1, e1) and [s2, e2) intersect."""
    return s1 < e2 and s2 < e1


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7
