"""Pydantic models for user sleep settings"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from sleeptrack.utils.time_utils import ensure_aware, is_valid_reminder_time, now_utc

DEFAULT_TARGET_HOURS = 8.0
DEFAULT_REMINDER_ENABLED = False
DEFAULT_REMINDER_TIME = "22:00"
DEFAULT_ONBOARDING_COMPLETED = False


def _check_reminder_time(v: Optional[str]) -> Optional[str]:
    if v is not None and not is_valid_reminder_time(v):
        raise ValueError(
            f"Invalid time format: '{v}'. Must be HH:MM (e.g., '22:00')"
        )
    return v.strip() if v is not None else None


class UserSettings(BaseModel):
    """Sleep goal and bedtime reminder settings (one record per user)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    target_hours: float = Field(default=DEFAULT_TARGET_HOURS, gt=0, le=24)
    reminder_enabled: bool = DEFAULT_REMINDER_ENABLED
    reminder_time: str = DEFAULT_REMINDER_TIME  # "HH:MM", wall clock, no date
    onboarding_completed: bool = DEFAULT_ONBOARDING_COMPLETED
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator('reminder_time')
    @classmethod
    def validate_reminder_time(cls, v: str) -> str:
        return _check_reminder_time(v)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @classmethod
    def defaults_for(cls, user_id: str) -> "UserSettings":
        """Fresh record with documented defaults"""
        return cls(user_id=user_id)


class SettingsUpdate(BaseModel):
    """Partial settings change; unset fields are left untouched"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')

    target_hours: Optional[float] = Field(default=None, gt=0, le=24)
    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = None
    onboarding_completed: Optional[bool] = None

    @field_validator('reminder_time')
    @classmethod
    def validate_reminder_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_reminder_time(v)

    def changes(self) -> dict:
        """Only the fields the caller actually supplied"""
        return self.model_dump(exclude_unset=True)
