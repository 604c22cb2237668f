"""
Sleep time and duration helpers

All functions here are pure. Instants are timezone-aware datetimes; naive
values are interpreted in the configured TIMEZONE. Display helpers render
in the caller's local zone.
"""

import logging
import math
import re
from datetime import datetime, date, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sleeptrack import config
from sleeptrack.exceptions import ValidationError

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600
WRAP_SECONDS = 24 * SECONDS_PER_HOUR

_REMINDER_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_DISPLAY_TIME_RE = re.compile(r"(\d+):(\d+)\s*(AM|PM)", re.IGNORECASE)

TzLike = Union[ZoneInfo, str, None]


def get_timezone(tz: TzLike = None) -> ZoneInfo:
    """
    Resolve a timezone name (or ZoneInfo) with fallback to UTC

    Args:
        tz: IANA name, ZoneInfo, or None for the configured TIMEZONE

    Returns:
        ZoneInfo object
    """
    if isinstance(tz, ZoneInfo):
        return tz
    name = tz or config.TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Invalid timezone '{name}': {e}")
        return ZoneInfo("UTC")


def now_utc() -> datetime:
    """Current datetime in UTC (timezone-aware)"""
    return datetime.now(ZoneInfo("UTC"))


def ensure_aware(dt: datetime, tz: TzLike = None) -> datetime:
    """Attach the local timezone to a naive datetime, leave aware ones untouched"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=get_timezone(tz))
    return dt


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like a calculator (2.25 -> 2.3), not banker's rounding"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_duration(bedtime: datetime, wake_time: datetime) -> float:
    """
    Hours slept between bedtime and wake time, rounded to one decimal

    A wake time strictly earlier than bedtime is treated as the next day
    (24 hours are added). Equal instants give 0, never 24.

    Args:
        bedtime: When the user went to bed
        wake_time: When the user woke up

    Returns:
        Non-negative duration in hours
    """
    diff = (ensure_aware(wake_time) - ensure_aware(bedtime)).total_seconds()
    if diff < 0:
        diff += WRAP_SECONDS
    # Guard against inputs more than a day apart in the wrong order
    diff = max(diff, 0.0)
    return round_half_up(diff / SECONDS_PER_HOUR, 1)


def format_duration(hours: float) -> str:
    """
    Format hours as a short readable string

    Examples:
        7.5 -> "7h 30m"
        8.0 -> "8h"
        0.0 -> "0h"
    """
    whole = math.floor(hours)
    minutes = int(round_half_up((hours - whole) * 60, 0))
    if minutes == 60:
        whole += 1
        minutes = 0
    if minutes == 0:
        return f"{whole}h"
    return f"{whole}h {minutes}m"


def format_time(dt: datetime, tz: TzLike = None) -> str:
    """Local clock time, e.g. "10:30 PM" """
    local = ensure_aware(dt).astimezone(get_timezone(tz))
    hour = local.hour % 12 or 12
    period = "PM" if local.hour >= 12 else "AM"
    return f"{hour}:{local.minute:02d} {period}"


def format_date(dt: datetime, tz: TzLike = None) -> str:
    """Local calendar date, e.g. "Mon, Jan 15" """
    local = ensure_aware(dt).astimezone(get_timezone(tz))
    return f"{local.strftime('%a')}, {local.strftime('%b')} {local.day}"


def local_date(dt: datetime, tz: TzLike = None) -> date:
    """Calendar date of an instant in local time"""
    return ensure_aware(dt).astimezone(get_timezone(tz)).date()


def day_bounds(day: date, tz: TzLike = None) -> tuple[datetime, datetime]:
    """Local midnight of ``day`` and the following midnight (exclusive end)"""
    zone = get_timezone(tz)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start, end


# ==========================================
# Reminder time helpers
# ==========================================

def _match_reminder_time(value: str) -> Optional[tuple[int, int]]:
    match = _REMINDER_TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def is_valid_reminder_time(value: str) -> bool:
    """True for a 24h "HH:MM" time of day"""
    return _match_reminder_time(value) is not None


def parse_reminder_time(value: str) -> time:
    """
    Parse a wall-clock reminder time in 24h "HH:MM" format

    Raises:
        ValidationError: If the string is not a valid time of day
    """
    parsed = _match_reminder_time(value)
    if parsed is None:
        raise ValidationError(
            f"'{value}' is not a valid HH:MM time of day",
            field="reminder_time",
            value=value,
        )
    return time(hour=parsed[0], minute=parsed[1])


def format_reminder_time(value: str) -> str:
    """Render "22:00" as "10:00 PM" """
    parsed = parse_reminder_time(value)
    period = "PM" if parsed.hour >= 12 else "AM"
    display_hour = parsed.hour % 12 or 12
    return f"{display_hour}:{parsed.minute:02d} {period}"


def parse_display_time(display_time: str, default: str = "22:00") -> str:
    """
    Convert "10:00 PM" back to 24h "22:00"

    Unparseable input returns ``default``.
    """
    match = _DISPLAY_TIME_RE.search(display_time or "")
    if not match:
        return default

    hours = int(match.group(1))
    minutes = match.group(2)
    period = match.group(3).upper()

    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0

    return f"{hours:02d}:{minutes}"


def today_local(tz: TzLike = None, now: Optional[datetime] = None) -> date:
    """Today's date in local time (``now`` overrides the clock)"""
    current = ensure_aware(now, tz) if now else now_utc()
    return current.astimezone(get_timezone(tz)).date()
