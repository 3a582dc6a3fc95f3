"""Boundary checks that turn loosely typed rows into scheduling types.

Every default the scheduler relies on lives here: a missing or unknown
priority becomes MEDIUM and missing profile times fall back to 07:00/23:00.
Anything else that does not map onto a closed enumeration is rejected.
"""
from __future__ import annotations

import re
from datetime import datetime, time, timezone
from typing import Any, Optional, Type, TypeVar

from app.services.scheduling.types import (
    Category,
    DayProfile,
    InvalidProfile,
    InvalidTask,
    Priority,
    TaskSpec,
    TimeOfDay,
)

DEFAULT_WAKE_UP_TIME = "07:00"
DEFAULT_BED_TIME = "23:00"

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

E = TypeVar("E", Category, Priority, TimeOfDay)


def parse_clock(value: Any) -> time:
    """Parse an ``HH:MM`` string (or pass through a ``time``)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    match = _CLOCK_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Clock time out of range: {value!r}")
    return time(hour, minute)


def format_clock(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def _enum_value(enum_cls: Type[E], raw: Any) -> Optional[E]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, enum_cls):
        return raw
    if not isinstance(raw, str):
        return None
    for member in enum_cls:
        if member.value.lower() == raw.strip().lower():
            return member
    return None


def coerce_category(raw: Any) -> Category:
    category = _enum_value(Category, raw)
    if category is None:
        raise InvalidTask(f"Unknown task category: {raw!r}")
    return category


def coerce_priority(raw: Any) -> Priority:
    return _enum_value(Priority, raw) or Priority.MEDIUM


def coerce_time_of_day(raw: Any) -> Optional[TimeOfDay]:
    if raw is None or raw == "":
        return None
    value = _enum_value(TimeOfDay, raw)
    if value is None:
        raise ValueError(f"Unknown time of day: {raw!r}")
    return value


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def coerce_task(
    *,
    id: Any,
    title: str,
    category: Any,
    priority: Any = None,
    duration_min: Any,
    deadline: Optional[datetime] = None,
    preferred_time: Any = None,
) -> TaskSpec:
    """Validate a single task row and return an immutable TaskSpec."""
    if isinstance(duration_min, bool) or not isinstance(duration_min, int):
        raise InvalidTask(f"Task {id}: duration must be an integer number of minutes")
    if duration_min <= 0:
        raise InvalidTask(f"Task {id}: duration must be positive, got {duration_min}")
    try:
        preferred = coerce_time_of_day(preferred_time)
    except ValueError as exc:
        raise InvalidTask(f"Task {id}: {exc}") from exc

    return TaskSpec(
        id=str(id),
        title=title,
        category=coerce_category(category),
        priority=coerce_priority(priority),
        duration_min=duration_min,
        deadline=naive_utc(deadline),
        preferred_time=preferred,
    )


def coerce_profile(
    *,
    wake_up_time: Any = None,
    bed_time: Any = None,
    energy_peak_time: Any = None,
    sleep_hours: Optional[float] = None,
) -> DayProfile:
    """Validate profile fields; wake-up must come strictly before bedtime."""
    try:
        wake = parse_clock(wake_up_time or DEFAULT_WAKE_UP_TIME)
        bed = parse_clock(bed_time or DEFAULT_BED_TIME)
        peak = coerce_time_of_day(energy_peak_time)
    except ValueError as exc:
        raise InvalidProfile(str(exc)) from exc

    if wake >= bed:
        raise InvalidProfile(
            f"Wake-up time {format_clock(wake)} must be before bedtime {format_clock(bed)}"
        )

    return DayProfile(
        wake_up_time=wake,
        bed_time=bed,
        energy_peak_time=peak,
        sleep_hours=float(sleep_hours) if sleep_hours is not None else 8.0,
    )
