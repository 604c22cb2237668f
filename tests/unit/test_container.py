"""Tests for session wiring"""
import pytest

from sleeptrack.exceptions import ConfigurationError
from sleeptrack.models.user import LOCAL_USER_ID, UserIdentity
from sleeptrack.services.container import (
    SleepSession,
    build_kv_store,
    open_local_session,
    open_remote_session,
)
from sleeptrack.services.settings_repository import SettingsRepository
from sleeptrack.services.sleep_repository import SleepEntryRepository
from sleeptrack.storage.kv_store import FileKeyValueStore, RedisKeyValueStore
from sleeptrack.storage.local import LocalSettingsBackend, LocalSleepBackend
from sleeptrack.storage.remote import PostgresSettingsBackend, PostgresSleepBackend


@pytest.fixture
def session(entry_backend, settings_backend, identity, mock_scheduler):
    return SleepSession(
        identity=identity,
        entry_backend=entry_backend,
        settings_backend=settings_backend,
        scheduler=mock_scheduler,
        timezone="Europe/Stockholm",
    )


def test_repositories_are_lazy_singletons(session):
    assert session._entries is None

    entries = session.entries
    settings = session.settings

    assert isinstance(entries, SleepEntryRepository)
    assert isinstance(settings, SettingsRepository)
    assert session.entries is entries
    assert session.settings is settings
    assert settings.scheduler is session.scheduler


@pytest.mark.asyncio
async def test_load_populates_both(session, test_user_id):
    await session.load()

    assert session.entries.entries == ()
    assert session.settings.settings.user_id == test_user_id


@pytest.mark.asyncio
async def test_close_discards_snapshots(session, at):
    await session.load()
    await session.entries.add(at(2024, 1, 16, 22), at(2024, 1, 17, 6))

    session.close()

    with pytest.raises(RuntimeError):
        session.entries
    with pytest.raises(RuntimeError):
        session.settings


def test_open_local_session(tmp_path):
    session = open_local_session(FileKeyValueStore(tmp_path))

    assert session.identity.user_id == LOCAL_USER_ID
    assert session.identity.is_authenticated
    assert isinstance(session.entry_backend, LocalSleepBackend)
    assert isinstance(session.settings_backend, LocalSettingsBackend)


def test_open_remote_session(mock_db):
    database, _, _ = mock_db
    session = open_remote_session(database, UserIdentity.signed_in("abc"), timezone="UTC")

    assert isinstance(session.entry_backend, PostgresSleepBackend)
    assert isinstance(session.settings_backend, PostgresSettingsBackend)
    assert session.timezone == "UTC"


def test_build_kv_store():
    assert isinstance(build_kv_store("file"), FileKeyValueStore)
    assert isinstance(build_kv_store("redis"), RedisKeyValueStore)

    with pytest.raises(ConfigurationError):
        build_kv_store("sqlite")
