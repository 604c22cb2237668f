"""
Remote storage: per-row PostgreSQL operations filtered by user id

Column names are snake_case (``wake_time``, ``user_id``); the mapping to and
from the app models happens here and nowhere else.
"""

import logging
from typing import Any, Dict, List, Optional

import psycopg

from sleeptrack.db.connection import Database
from sleeptrack.exceptions import RecordNotFoundError, wrap_storage_exception
from sleeptrack.models.sleep import SleepEntry
from sleeptrack.models.settings import UserSettings
from sleeptrack.storage.base import SettingsBackend, SleepEntryBackend

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = "id, user_id, bedtime, wake_time, duration, note, quality, created_at"
SETTINGS_COLUMNS = (
    "id, user_id, target_hours, reminder_enabled, reminder_time, "
    "onboarding_completed, created_at, updated_at"
)


# ==========================================
# Row mapping
# ==========================================

def entry_from_row(row: Dict[str, Any]) -> SleepEntry:
    """Database row -> SleepEntry"""
    return SleepEntry(
        id=str(row["id"]),
        user_id=row["user_id"],
        bedtime=row["bedtime"],
        wake_time=row["wake_time"],
        duration=float(row["duration"]),
        note=row.get("note"),
        quality=row.get("quality"),
        created_at=row.get("created_at"),
    )


def entry_to_row(entry: SleepEntry) -> Dict[str, Any]:
    """SleepEntry -> column values"""
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "bedtime": entry.bedtime,
        "wake_time": entry.wake_time,
        "duration": entry.duration,
        "note": entry.note,
        "quality": entry.quality,
    }


def settings_from_row(row: Dict[str, Any]) -> UserSettings:
    """Database row -> UserSettings"""
    return UserSettings(
        id=str(row["id"]),
        user_id=row["user_id"],
        target_hours=float(row["target_hours"]),
        reminder_enabled=row["reminder_enabled"],
        reminder_time=str(row["reminder_time"])[:5],
        onboarding_completed=row["onboarding_completed"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def settings_to_row(settings: UserSettings) -> Dict[str, Any]:
    """UserSettings -> column values"""
    return {
        "id": settings.id,
        "user_id": settings.user_id,
        "target_hours": settings.target_hours,
        "reminder_enabled": settings.reminder_enabled,
        "reminder_time": settings.reminder_time,
        "onboarding_completed": settings.onboarding_completed,
        "created_at": settings.created_at,
        "updated_at": settings.updated_at,
    }


# ==========================================
# Sleep entries
# ==========================================

class PostgresSleepBackend(SleepEntryBackend):
    """Sleep entries in the ``sleep_entries`` table"""

    def __init__(self, database: Database):
        self.db = database

    async def _fetch(self, operation: str, query: str, params: Dict[str, Any], fetch: Optional[str] = "one"):
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    result = None
                    if fetch == "all":
                        result = await cur.fetchall()
                    elif fetch == "one":
                        result = await cur.fetchone()
                await conn.commit()
            return result
        except psycopg.Error as e:
            raise wrap_storage_exception(
                e,
                operation=operation,
                user_id=params.get("user_id"),
                context={"entry_id": params.get("id")},
            )

    async def list(self, user_scope: str) -> List[SleepEntry]:
        rows = await self._fetch(
            "list_sleep_entries",
            f"""
            SELECT {ENTRY_COLUMNS}
            FROM sleep_entries
            WHERE user_id = %(user_id)s
            ORDER BY bedtime DESC
            """,
            {"user_id": user_scope},
            fetch="all",
        )
        try:
            entries = [entry_from_row(row) for row in rows or []]
        except Exception as e:
            raise wrap_storage_exception(e, operation="list_sleep_entries", user_id=user_scope)
        logger.debug(f"Fetched {len(entries)} sleep entries for {user_scope}")
        return entries

    async def insert(self, entry: SleepEntry) -> SleepEntry:
        row = await self._fetch(
            "insert_sleep_entry",
            f"""
            INSERT INTO sleep_entries (id, user_id, bedtime, wake_time, duration, note, quality)
            VALUES (%(id)s, %(user_id)s, %(bedtime)s, %(wake_time)s, %(duration)s, %(note)s, %(quality)s)
            RETURNING {ENTRY_COLUMNS}
            """,
            entry_to_row(entry),
        )
        logger.info(f"Saved sleep entry {entry.id} for user {entry.user_id}")
        return entry_from_row(row) if row else entry

    async def replace(self, entry_id: str, entry: SleepEntry) -> SleepEntry:
        params = entry_to_row(entry)
        params["id"] = entry_id
        row = await self._fetch(
            "replace_sleep_entry",
            f"""
            UPDATE sleep_entries
            SET bedtime = %(bedtime)s,
                wake_time = %(wake_time)s,
                duration = %(duration)s,
                note = %(note)s,
                quality = %(quality)s
            WHERE id = %(id)s AND user_id = %(user_id)s
            RETURNING {ENTRY_COLUMNS}
            """,
            params,
        )
        if row is None:
            raise RecordNotFoundError(
                f"Sleep entry {entry_id} not found",
                record_type="Sleep entry",
                record_id=entry_id,
                user_id=entry.user_id,
                operation="replace_sleep_entry",
            )
        logger.info(f"Updated sleep entry {entry_id}")
        return entry_from_row(row)

    async def delete(self, entry_id: str, user_scope: str) -> None:
        row = await self._fetch(
            "delete_sleep_entry",
            "DELETE FROM sleep_entries WHERE id = %(id)s AND user_id = %(user_id)s RETURNING id",
            {"id": entry_id, "user_id": user_scope},
        )
        if row is None:
            raise RecordNotFoundError(
                f"Sleep entry {entry_id} not found",
                record_type="Sleep entry",
                record_id=entry_id,
                user_id=user_scope,
                operation="delete_sleep_entry",
            )
        logger.info(f"Deleted sleep entry {entry_id}")

    async def delete_all(self, user_scope: str) -> None:
        await self._fetch(
            "clear_sleep_entries",
            "DELETE FROM sleep_entries WHERE user_id = %(user_id)s",
            {"user_id": user_scope},
            fetch=None,
        )
        logger.info(f"Cleared all sleep entries for user {user_scope}")


# ==========================================
# Settings
# ==========================================

class PostgresSettingsBackend(SettingsBackend):
    """One row per user in the ``user_settings`` table"""

    def __init__(self, database: Database):
        self.db = database

    async def _fetchone(self, operation: str, query: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                await conn.commit()
            return row
        except psycopg.Error as e:
            raise wrap_storage_exception(e, operation=operation, user_id=params.get("user_id"))

    async def get(self, user_id: str) -> Optional[UserSettings]:
        row = await self._fetchone(
            "get_user_settings",
            f"SELECT {SETTINGS_COLUMNS} FROM user_settings WHERE user_id = %(user_id)s",
            {"user_id": user_id},
        )
        return settings_from_row(row) if row else None

    async def insert(self, settings: UserSettings) -> UserSettings:
        row = await self._fetchone(
            "insert_user_settings",
            f"""
            INSERT INTO user_settings
            (id, user_id, target_hours, reminder_enabled, reminder_time,
             onboarding_completed, created_at, updated_at)
            VALUES (%(id)s, %(user_id)s, %(target_hours)s, %(reminder_enabled)s, %(reminder_time)s,
                    %(onboarding_completed)s, %(created_at)s, %(updated_at)s)
            RETURNING {SETTINGS_COLUMNS}
            """,
            settings_to_row(settings),
        )
        logger.info(f"Created settings for {settings.user_id}")
        return settings_from_row(row) if row else settings

    async def replace(self, user_id: str, settings: UserSettings) -> UserSettings:
        params = settings_to_row(settings)
        params["user_id"] = user_id
        row = await self._fetchone(
            "update_user_settings",
            f"""
            UPDATE user_settings
            SET target_hours = %(target_hours)s,
                reminder_enabled = %(reminder_enabled)s,
                reminder_time = %(reminder_time)s,
                onboarding_completed = %(onboarding_completed)s,
                updated_at = %(updated_at)s
            WHERE user_id = %(user_id)s
            RETURNING {SETTINGS_COLUMNS}
            """,
            params,
        )
        if row is None:
            raise RecordNotFoundError(
                f"Settings for user {user_id} not found",
                record_type="Settings",
                record_id=user_id,
                user_id=user_id,
                operation="update_user_settings",
            )
        logger.info(f"Updated settings for {user_id}")
        return settings_from_row(row)
