"""Global test fixtures and utilities for sleeptrack tests"""
import pytest
from datetime import datetime
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

from sleeptrack.exceptions import RecordNotFoundError, StorageError
from sleeptrack.models.settings import UserSettings
from sleeptrack.models.sleep import SleepEntry
from sleeptrack.models.user import UserIdentity
from sleeptrack.storage.base import SettingsBackend, SleepEntryBackend


TEST_TZ = ZoneInfo("Europe/Stockholm")


# ============================================================================
# In-memory backends
# ============================================================================

class InMemorySleepBackend(SleepEntryBackend):
    """Dict-backed entry backend with switchable failures"""

    def __init__(self):
        self.rows: Dict[str, SleepEntry] = {}
        self.fail_with: Optional[Exception] = None
        self.calls: List[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None:
            raise self.fail_with

    async def list(self, user_scope):
        self._maybe_fail("list")
        return [e for e in self.rows.values() if e.user_id == user_scope]

    async def insert(self, entry):
        self._maybe_fail("insert")
        self.rows[entry.id] = entry
        return entry

    async def replace(self, entry_id, entry):
        self._maybe_fail("replace")
        if entry_id not in self.rows:
            raise RecordNotFoundError("missing", record_type="Sleep entry", record_id=entry_id)
        self.rows[entry_id] = entry
        return entry

    async def delete(self, entry_id, user_scope):
        self._maybe_fail("delete")
        if entry_id not in self.rows or self.rows[entry_id].user_id != user_scope:
            raise RecordNotFoundError("missing", record_type="Sleep entry", record_id=entry_id)
        del self.rows[entry_id]

    async def delete_all(self, user_scope):
        self._maybe_fail("delete_all")
        self.rows = {k: v for k, v in self.rows.items() if v.user_id != user_scope}


class InMemorySettingsBackend(SettingsBackend):
    """Dict-backed settings backend with switchable failures"""

    def __init__(self):
        self.rows: Dict[str, UserSettings] = {}
        self.fail_with: Optional[Exception] = None
        self.inserts = 0

    async def get(self, user_id):
        if self.fail_with is not None:
            raise self.fail_with
        return self.rows.get(user_id)

    async def insert(self, settings):
        if self.fail_with is not None:
            raise self.fail_with
        self.inserts += 1
        self.rows[settings.user_id] = settings
        return settings

    async def replace(self, user_id, settings):
        if self.fail_with is not None:
            raise self.fail_with
        if user_id not in self.rows:
            raise RecordNotFoundError("missing", record_type="Settings", record_id=user_id)
        self.rows[user_id] = settings
        return settings


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def identity(test_user_id):
    """Signed-in identity"""
    return UserIdentity.signed_in(test_user_id)


@pytest.fixture
def tz():
    """Local timezone used by tests"""
    return TEST_TZ


@pytest.fixture
def fixed_now():
    """Wednesday 17 Jan 2024, 09:00 local"""
    return datetime(2024, 1, 17, 9, 0, tzinfo=TEST_TZ)


@pytest.fixture
def entry_backend():
    return InMemorySleepBackend()


@pytest.fixture
def settings_backend():
    return InMemorySettingsBackend()


@pytest.fixture
def storage_failure():
    """A backend failure as the storage layer reports it"""
    return StorageError("backend unreachable", operation="test")


@pytest.fixture
def mock_scheduler():
    """Notification collaborator"""
    scheduler = MagicMock()
    scheduler.schedule = AsyncMock(return_value="bedtime_reminder_1")
    scheduler.cancel_all = AsyncMock()
    return scheduler


@pytest.fixture
def mock_db():
    """
    Mock Database whose connection() yields a connection with a cursor

    Returns (database, cursor, connection)
    """
    cursor = AsyncMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])

    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = cursor
    conn.commit = AsyncMock()

    database = MagicMock()
    database.connection.return_value.__aenter__.return_value = conn
    return database, cursor, conn


def local_dt(year, month, day, hour=0, minute=0):
    """Aware datetime in the test timezone"""
    return datetime(year, month, day, hour, minute, tzinfo=TEST_TZ)


@pytest.fixture
def at():
    """Factory for aware local datetimes"""
    return local_dt
