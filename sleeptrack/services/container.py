"""
Session Container - Per-session dependency wiring

Builds the storage backends for the configured mode and hands out the
entry and settings repositories for one signed-in user. A session is
opened after sign-in and closed on sign-out; nothing is shared between
sessions.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from sleeptrack import config
from sleeptrack.db.connection import Database
from sleeptrack.exceptions import ConfigurationError
from sleeptrack.models.user import UserIdentity
from sleeptrack.services.notifications import ReminderScheduler
from sleeptrack.services.settings_repository import SettingsRepository
from sleeptrack.services.sleep_repository import SleepEntryRepository
from sleeptrack.storage.base import SettingsBackend, SleepEntryBackend
from sleeptrack.storage.kv_store import FileKeyValueStore, KeyValueStore, RedisKeyValueStore
from sleeptrack.storage.local import LocalSettingsBackend, LocalSleepBackend
from sleeptrack.storage.remote import PostgresSettingsBackend, PostgresSleepBackend
from sleeptrack.utils.time_utils import TzLike

logger = logging.getLogger(__name__)


@dataclass
class SleepSession:
    """
    Repositories for one user session.

    Repositories are lazy-loaded on first access via properties.
    Backends and the optional reminder scheduler are injected.
    """

    identity: UserIdentity
    entry_backend: SleepEntryBackend
    settings_backend: SettingsBackend
    scheduler: Optional[ReminderScheduler] = None
    timezone: TzLike = None

    _entries: Optional[SleepEntryRepository] = field(default=None, init=False, repr=False)
    _settings: Optional[SettingsRepository] = field(default=None, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed; open a new one after signing in")

    @property
    def entries(self) -> SleepEntryRepository:
        """Get SleepEntryRepository instance (lazy-loaded)"""
        self._check_open()
        if self._entries is None:
            self._entries = SleepEntryRepository(self.entry_backend, self.identity, tz=self.timezone)
            logger.debug("SleepEntryRepository instantiated")
        return self._entries

    @property
    def settings(self) -> SettingsRepository:
        """Get SettingsRepository instance (lazy-loaded)"""
        self._check_open()
        if self._settings is None:
            self._settings = SettingsRepository(self.settings_backend, self.identity, self.scheduler)
            logger.debug("SettingsRepository instantiated")
        return self._settings

    async def load(self) -> None:
        """Load entries and settings for the session's user"""
        await self.entries.load()
        await self.settings.load()

    def close(self) -> None:
        """Discard the repositories and their snapshots (sign-out)"""
        self._entries = None
        self._settings = None
        self._closed = True
        logger.info(f"Closed session for user {self.identity.user_id}")


def build_kv_store(kind: Optional[str] = None) -> KeyValueStore:
    """Key-value store for local mode (defaults to LOCAL_KV_BACKEND)"""
    kind = kind or config.LOCAL_KV_BACKEND
    if kind == "file":
        return FileKeyValueStore(config.DATA_PATH)
    if kind == "redis":
        return RedisKeyValueStore(config.REDIS_URL)
    raise ConfigurationError(f"Unknown LOCAL_KV_BACKEND '{kind}'", config_key="LOCAL_KV_BACKEND")


def open_local_session(
    store: KeyValueStore,
    scheduler: Optional[ReminderScheduler] = None,
    timezone: TzLike = None,
) -> SleepSession:
    """Session over the single on-device collection"""
    logger.info("Opening local session")
    return SleepSession(
        identity=UserIdentity.local(),
        entry_backend=LocalSleepBackend(store),
        settings_backend=LocalSettingsBackend(store),
        scheduler=scheduler,
        timezone=timezone,
    )


def open_remote_session(
    database: Database,
    identity: UserIdentity,
    scheduler: Optional[ReminderScheduler] = None,
    timezone: TzLike = None,
) -> SleepSession:
    """Session over the remote store for a signed-in (or anonymous) user"""
    logger.info(f"Opening remote session for user {identity.user_id}")
    return SleepSession(
        identity=identity,
        entry_backend=PostgresSleepBackend(database),
        settings_backend=PostgresSettingsBackend(database),
        scheduler=scheduler,
        timezone=timezone,
    )
