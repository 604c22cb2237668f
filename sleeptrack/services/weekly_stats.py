"""
Weekly sleep statistics

Pure functions over a snapshot of entries. An entry counts toward the local
calendar day that contains its bedtime; its duration is never split across
midnight.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from sleeptrack.models.sleep import SleepEntry, WeeklyStats
from sleeptrack.utils.time_utils import (
    TzLike,
    get_timezone,
    local_date,
    round_half_up,
    today_local,
)

WINDOW_DAYS = 7


def compute_weekly_stats(
    entries: Iterable[SleepEntry],
    now: Optional[datetime] = None,
    tz: TzLike = None,
) -> WeeklyStats:
    """
    Seven daily totals ending today, plus the average over days with data

    Args:
        entries: Current repository snapshot
        now: Reference instant (defaults to the current time)
        tz: Local timezone for day boundaries

    Returns:
        WeeklyStats with days ordered oldest first
    """
    zone = get_timezone(tz)
    entries = list(entries)
    today = today_local(zone, now)
    days = [today - timedelta(days=offset) for offset in range(WINDOW_DAYS - 1, -1, -1)]

    totals = {day: 0.0 for day in days}
    for entry in entries:
        day = local_date(entry.bedtime, zone)
        if day in totals:
            totals[day] += entry.duration

    # Durations carry one decimal, so their sums do too
    daily_durations = [round(totals[day], 1) for day in days]

    days_with_data = [d for d in daily_durations if d > 0]
    average = sum(days_with_data) / len(days_with_data) if days_with_data else 0.0

    return WeeklyStats(
        days=days,
        day_labels=[day.strftime("%a") for day in days],
        daily_durations=daily_durations,
        average_duration=round_half_up(average, 1),
        total_entries=len(entries),
    )


def sleep_quality_label(average_hours: float) -> str:
    """Rate an average nightly duration"""
    if 7 <= average_hours <= 9:
        return "Excellent"
    if 6 <= average_hours < 7:
        return "Good"
    if 5 <= average_hours < 6:
        return "Fair"
    return "Poor"
