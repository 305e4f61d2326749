"""Recurrence and announcement-trigger calculations.

All functions are pure: "now" is a parameter (defaults to the current time) and
the time zone is passed in by the caller. Instants are returned as aware UTC.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from squash.errors import InvalidScaffold
from squash.models import DayOfWeek

# Sunday = 0 ... Saturday = 6
DAY_OF_WEEK_TO_NUMBER = {
    DayOfWeek.SUN.value: 0,
    DayOfWeek.MON.value: 1,
    DayOfWeek.TUE.value: 2,
    DayOfWeek.WED.value: 3,
    DayOfWeek.THU.value: 4,
    DayOfWeek.FRI.value: 5,
    DayOfWeek.SAT.value: 6,
}

_DAY_NAMES = {
    "mon": "Mon", "monday": "Mon",
    "tue": "Tue", "tuesday": "Tue",
    "wed": "Wed", "wednesday": "Wed",
    "thu": "Thu", "thursday": "Thu",
    "fri": "Fri", "friday": "Fri",
    "sat": "Sat", "saturday": "Sat",
    "sun": "Sun", "sunday": "Sun",
}

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
OFFSET_RE = re.compile(r"^-(\d+)(d|h)(?:\s+(\d{1,2}):(\d{2}))?$")

DUPLICATE_TOLERANCE = timedelta(hours=1)


def _zone(tz: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidScaffold(f"Unknown time zone {tz!r}") from e


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _day_number(d: datetime | date) -> int:
    """Sunday-based day ordinal (Sun=0, Mon=1, ..., Sat=6)."""
    return d.isoweekday() % 7


def parse_day_of_week(value: str) -> Optional[str]:
    """'mon', 'Monday', 'MON' -> 'Mon'. None if unrecognized."""
    return _DAY_NAMES.get(value.strip().lower())


def parse_time(value: str) -> time:
    """'21:00' -> time(21, 0). Raises InvalidScaffold on bad format."""
    value = value.strip()
    if not TIME_RE.match(value):
        raise InvalidScaffold(f'Invalid time format "{value}". Expected HH:MM')
    hours, minutes = (int(x) for x in value.split(":"))
    return time(hours, minutes)


def calculate_next_occurrence(scaffold, now: Optional[datetime] = None, tz: str = "UTC") -> datetime:
    """Next occurrence of the scaffold's weekday + time, at or after `now`.

    Same weekday with the time already passed rolls over to next week. The
    calculation happens on the wall clock of `tz`.
    """
    target_day = DAY_OF_WEEK_TO_NUMBER.get(scaffold.day_of_week or "")
    if target_day is None:
        raise InvalidScaffold(f'Invalid scaffold: unknown day of week "{scaffold.day_of_week}"')
    if not scaffold.time:
        raise InvalidScaffold("Invalid scaffold: missing time")
    at = parse_time(scaffold.time)

    zone = _zone(tz)
    local_now = _now(now).astimezone(zone)

    days_until = target_day - _day_number(local_now)
    if days_until < 0:
        days_until += 7
    elif days_until == 0:
        today_at = datetime.combine(local_now.date(), at, tzinfo=zone)
        if local_now > today_at:
            days_until = 7

    try:
        target_date = local_now.date() + timedelta(days=days_until)
        result = datetime.combine(target_date, at, tzinfo=zone)
        return result.astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        raise InvalidScaffold("Invalid scaffold: failed to calculate next occurrence date") from e


def parse_offset(notation: str) -> tuple[int, int, Optional[time]]:
    """Parse "-1d", "-24h" or "-1d 12:00" into (days, hours, wall time or None)."""
    m = OFFSET_RE.match(notation.strip())
    if not m:
        raise InvalidScaffold(f"Invalid offset notation: {notation}")
    value, unit, hh, mm = m.groups()
    days = int(value) if unit == "d" else 0
    hours = int(value) if unit == "h" else 0
    wall = None
    if hh is not None:
        h, mi = int(hh), int(mm)
        if h > 23 or mi > 59:
            raise InvalidScaffold(f"Invalid time in notation: {notation}")
        wall = time(h, mi)
    return days, hours, wall


def calculate_trigger_time(notation: str, occurrence: datetime, tz: str) -> datetime:
    """Instant at which `occurrence` should be materialized, per the offset notation."""
    days, hours, wall = parse_offset(notation)
    zone = _zone(tz)
    local = _now(occurrence).astimezone(zone)

    if days:
        # Move the calendar date, keep the local wall time
        shifted = (local.replace(tzinfo=None) - timedelta(days=days)).replace(tzinfo=zone)
    else:
        shifted = (local.astimezone(timezone.utc) - timedelta(hours=hours)).astimezone(zone)

    if wall is not None:
        shifted = datetime.combine(shifted.date(), wall, tzinfo=zone)
    return shifted.astimezone(timezone.utc)


def should_trigger(notation: str, occurrence: datetime, tz: str, now: Optional[datetime] = None) -> bool:
    """True once `now` has reached the trigger point of a still-upcoming occurrence."""
    now = _now(now)
    occurrence = _now(occurrence)
    if occurrence < now:
        return False
    return now >= calculate_trigger_time(notation, occurrence, tz)


def event_exists(events: Iterable, scaffold_id: str, instant: datetime) -> bool:
    """An event of the same scaffold less than an hour away counts as the same occurrence."""
    instant = _now(instant)
    return any(
        e.scaffold_id == scaffold_id and abs(_now(e.starts_at) - instant) < DUPLICATE_TOLERANCE
        for e in events
    )


def parse_date(value: str, tz: str, now: Optional[datetime] = None) -> date:
    """Parse 'today', 'tomorrow', 'sat', 'next sat' or 'YYYY-MM-DD' to a local date."""
    normalized = value.strip().lower()
    today = _now(now).astimezone(_zone(tz)).date()

    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", normalized):
        try:
            return date.fromisoformat(normalized)
        except ValueError as e:
            raise InvalidScaffold(f"Invalid date: {value}") from e
    if normalized == "today":
        return today
    if normalized == "tomorrow":
        return today + timedelta(days=1)

    next_week = False
    m = re.fullmatch(r"next\s+(\w+)", normalized)
    if m:
        normalized = m.group(1)
        next_week = True
    day = parse_day_of_week(normalized)
    if day is None:
        raise InvalidScaffold(f"Invalid date: {value}")

    days_until = DAY_OF_WEEK_TO_NUMBER[day] - _day_number(today)
    if days_until <= 0:
        days_until += 7
    elif next_week:
        # Still ahead this week: "next" skips to the week after
        days_until += 7
    return today + timedelta(days=days_until)


def local_datetime(on: date, at: str, tz: str) -> datetime:
    """Combine a local date and HH:MM into an aware UTC instant."""
    return datetime.combine(on, parse_time(at), tzinfo=_zone(tz)).astimezone(timezone.utc)
