"""
Service Layer Package

Business logic between callers (screens, CLI) and the storage backends.

Core Services:
- SleepEntryRepository: sleep entry CRUD and the sorted snapshot
- SettingsRepository: sleep goal, onboarding and reminder settings
- compute_weekly_stats: trailing 7-day statistics

Collaborators:
- TelegramReminderScheduler: daily bedtime reminder via a Telegram JobQueue
- SleepSession: per-session wiring of repositories to backends
"""

from sleeptrack.services.container import SleepSession, open_local_session, open_remote_session
from sleeptrack.services.notifications import ReminderScheduler, TelegramReminderScheduler, bedtime_message
from sleeptrack.services.settings_repository import SettingsRepository, SettingsUpdateResult
from sleeptrack.services.sleep_repository import SleepEntryRepository
from sleeptrack.services.weekly_stats import compute_weekly_stats, sleep_quality_label

__all__ = [
    "SleepSession",
    "open_local_session",
    "open_remote_session",
    "ReminderScheduler",
    "TelegramReminderScheduler",
    "bedtime_message",
    "SettingsRepository",
    "SettingsUpdateResult",
    "SleepEntryRepository",
    "compute_weekly_stats",
    "sleep_quality_label",
]
