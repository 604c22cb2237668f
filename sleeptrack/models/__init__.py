"""Data models"""
from sleeptrack.models.sleep import SleepEntry, WeeklyStats
from sleeptrack.models.settings import SettingsUpdate, UserSettings
from sleeptrack.models.user import UserIdentity

__all__ = [
    "SleepEntry",
    "WeeklyStats",
    "SettingsUpdate",
    "UserSettings",
    "UserIdentity",
]
