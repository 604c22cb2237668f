"""Pydantic models for sleep tracking"""
from datetime import datetime, date
from typing import Optional, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from sleeptrack.utils.time_utils import calculate_duration, ensure_aware

NOTE_MAX_LENGTH = 200
QUALITY_MIN = 1
QUALITY_MAX = 5


def generate_entry_id() -> str:
    """Opaque unique id for a new sleep entry"""
    return str(uuid4())


class SleepEntry(BaseModel):
    """
    One recorded sleep session

    ``duration`` is derived from bedtime and wake time at write time;
    build new entries with ``SleepEntry.from_times`` so it is never
    taken from the caller. Serialized with camelCase keys (``wakeTime``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=generate_entry_id)
    user_id: Optional[str] = None
    bedtime: datetime
    wake_time: datetime
    duration: float = Field(ge=0)
    note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH)
    quality: Optional[int] = Field(None, ge=QUALITY_MIN, le=QUALITY_MAX)
    created_at: Optional[datetime] = None

    @field_validator('note', mode='before')
    @classmethod
    def normalize_note(cls, v: Optional[str]) -> Optional[str]:
        """Trim note; empty or whitespace-only means no note"""
        if v is None:
            return None
        trimmed = str(v).strip()
        return trimmed or None

    @field_validator('bedtime', 'wake_time', 'created_at')
    @classmethod
    def make_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive datetimes are local time"""
        return ensure_aware(v) if v is not None else None

    @classmethod
    def from_times(
        cls,
        bedtime: datetime,
        wake_time: datetime,
        note: Optional[str] = None,
        quality: Optional[int] = None,
        user_id: Optional[str] = None,
        entry_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "SleepEntry":
        """Build an entry with duration computed from its own times"""
        fields = {
            "user_id": user_id,
            "bedtime": bedtime,
            "wake_time": wake_time,
            "duration": calculate_duration(bedtime, wake_time),
            "note": note,
            "quality": quality,
            "created_at": created_at,
        }
        if entry_id is not None:
            fields["id"] = entry_id
        return cls(**fields)

    def sort_key(self) -> tuple[datetime, str]:
        """Bedtime first, id breaks ties deterministically"""
        return (self.bedtime, self.id)


class WeeklyStats(BaseModel):
    """Trailing 7-day view of sleep totals (derived, never persisted)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    days: List[date]
    day_labels: List[str]
    daily_durations: List[float]
    average_duration: float = 0.0
    total_entries: int = 0

    @property
    def has_data(self) -> bool:
        return any(d > 0 for d in self.daily_durations)
