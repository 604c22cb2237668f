"""
SettingsRepository - Sleep goal and reminder settings

One settings record per user, created with defaults on first access.
After each committed update the bedtime reminder is rescheduled or
cancelled; that step is best effort and never fails the update.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pydantic

from sleeptrack.exceptions import AuthenticationError, StorageError, validation_error_from
from sleeptrack.models.settings import SettingsUpdate, UserSettings
from sleeptrack.models.user import UserIdentity
from sleeptrack.services.notifications import ReminderScheduler
from sleeptrack.storage.base import SettingsBackend
from sleeptrack.utils.time_utils import now_utc

logger = logging.getLogger(__name__)

REMINDER_SCHEDULED = "scheduled"
REMINDER_CANCELLED = "cancelled"


@dataclass(frozen=True)
class SettingsUpdateResult:
    """Committed settings plus the outcome of the reminder hook"""

    settings: UserSettings
    reminder_action: Optional[str] = None
    reminder_id: Optional[str] = None
    warning: Optional[str] = None

    @property
    def reminder_ok(self) -> bool:
        return self.warning is None


class SettingsRepository:
    """Repository for the current user's settings record"""

    def __init__(
        self,
        backend: SettingsBackend,
        identity: UserIdentity,
        scheduler: Optional[ReminderScheduler] = None,
    ):
        """
        Initialize SettingsRepository.

        Args:
            backend: Local or remote settings storage
            identity: Current user
            scheduler: Notification collaborator (optional)
        """
        self.backend = backend
        self.identity = identity
        self.scheduler = scheduler
        self._settings: Optional[UserSettings] = None
        self.error: Optional[str] = None

    @property
    def settings(self) -> Optional[UserSettings]:
        return self._settings

    @property
    def needs_onboarding(self) -> bool:
        """True once settings are loaded and onboarding has not been completed"""
        return self._settings is not None and not self._settings.onboarding_completed

    async def load(self) -> Optional[UserSettings]:
        """
        Fetch the user's settings, creating the default record if none exists.

        Returns:
            UserSettings, or None for an unauthenticated session

        Raises:
            StorageError: Backend failure; previously loaded settings are kept
        """
        if not self.identity.is_authenticated:
            self._settings = None
            return None

        user_id = self.identity.user_id
        try:
            settings = await self.backend.get(user_id)
            if settings is None:
                logger.info(f"No settings for user {user_id}, creating defaults")
                settings = await self.backend.insert(UserSettings.defaults_for(user_id))
        except StorageError as e:
            self.error = e.user_message
            raise

        self._settings = settings
        self.error = None
        return settings

    async def update(self, **fields) -> SettingsUpdateResult:
        """
        Merge the supplied fields into the settings record and persist it.

        Args:
            **fields: Any of target_hours, reminder_enabled, reminder_time,
                onboarding_completed

        Returns:
            SettingsUpdateResult with the committed record and reminder outcome

        Raises:
            AuthenticationError: No signed-in user
            ValidationError: A supplied field is invalid
            StorageError: Backend failure; in-memory settings unchanged
        """
        if not self.identity.is_authenticated:
            raise AuthenticationError("Cannot update settings without a signed-in user", operation="update_settings")

        try:
            changes = SettingsUpdate(**fields).changes()
        except pydantic.ValidationError as e:
            raise validation_error_from(e, operation="update_settings")

        current = self._settings or await self.load()
        merged = current.model_copy(update={**changes, "updated_at": now_utc()})

        try:
            saved = await self.backend.replace(current.user_id, merged)
        except StorageError as e:
            self.error = e.user_message
            raise

        self._settings = saved
        self.error = None
        logger.info(f"Updated settings for user {saved.user_id}: {sorted(changes)}")

        return await self._sync_reminder(saved)

    async def complete_onboarding(
        self,
        target_hours: float,
        reminder_enabled: bool,
        reminder_time: str,
    ) -> SettingsUpdateResult:
        """Save onboarding choices and mark onboarding as done"""
        return await self.update(
            target_hours=target_hours,
            reminder_enabled=reminder_enabled,
            reminder_time=reminder_time,
            onboarding_completed=True,
        )

    async def _sync_reminder(self, settings: UserSettings) -> SettingsUpdateResult:
        """Schedule or cancel the bedtime reminder for committed settings"""
        if self.scheduler is None:
            return SettingsUpdateResult(settings=settings)

        action = REMINDER_SCHEDULED if settings.reminder_enabled else REMINDER_CANCELLED
        try:
            if settings.reminder_enabled:
                reminder_id = await self.scheduler.schedule(settings.reminder_time, settings.target_hours)
                if reminder_id is None:
                    return SettingsUpdateResult(
                        settings=settings,
                        reminder_action=action,
                        warning="Bedtime reminder could not be scheduled",
                    )
                return SettingsUpdateResult(settings=settings, reminder_action=action, reminder_id=reminder_id)

            await self.scheduler.cancel_all()
            return SettingsUpdateResult(settings=settings, reminder_action=action)
        except Exception as e:
            logger.warning(
                f"Reminder {action} failed for user {settings.user_id}: {e}",
                exc_info=True,
            )
            return SettingsUpdateResult(settings=settings, reminder_action=action, warning=str(e))
