"""Арифметика времени суток

All times inside the core are integer minutes since midnight. Strings
("HH:MM" or "HH:MM:SS") exist only at the storage and UI boundary.
"""

import re
from datetime import date, datetime
from typing import List

from utils.error_handler import InvalidDateFormat, InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^([0-9]{1,2}):([0-9]{2})(?::([0-9]{2}))?$")


def parse_time(value: str) -> int:
    """Parse "HH:MM" or "HH:MM:SS" into minutes since midnight

    Seconds are validated and dropped.

    Raises:
        InvalidTimeFormat: malformed string, hour outside 0-23 or
            minute outside 0-59
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(value=repr(value))

    match = _TIME_RE.match(value.strip())
    if not match:
        raise InvalidTimeFormat(value=value)

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise InvalidTimeFormat(value=value)

    return hour * 60 + minute


def format_time(minutes: int) -> str:
    """Minutes since midnight -> "HH:MM" """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTimeFormat(f"Minutes out of range: {minutes}", value=minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(minutes: int, delta: int) -> int:
    """Shift a time of day; the result may pass midnight (>= 1440)"""
    return minutes + delta


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap: touching endpoints do not overlap"""
    return a_start < b_end and b_start < a_end


def generate_hourly_slots(start_hour: int, end_hour_inclusive: int) -> List[str]:
    """["06:00", "07:00", ..., "23:00"] for (6, 23)"""
    return [f"{hour:02d}:00" for hour in range(start_hour, end_hour_inclusive + 1)]


def candidate_catalog_options(step_minutes: int = 30) -> List[str]:
    """All times a professional can tick in the booking catalog editor"""
    return [format_time(m) for m in range(0, MINUTES_PER_DAY, step_minutes)]


def business_hours_slots(
    start_hour: int, end_hour: int, step_minutes: int = 30
) -> List[str]:
    """Catalog preset: every option with start_hour <= hour < end_hour"""
    return [
        slot
        for slot in candidate_catalog_options(step_minutes)
        if start_hour <= parse_time(slot) // 60 < end_hour
    ]


def parse_date(value) -> date:
    """Parse an ISO "YYYY-MM-DD" date (date objects pass through)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidDateFormat(value=str(value)) from e


def format_date(value: date) -> str:
    return value.isoformat()


def day_of_week(value: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return value.isoweekday() % 7
