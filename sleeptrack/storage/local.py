"""
Local-only storage: the whole collection serialized as one JSON blob

Entries are stored with their in-app camelCase field names. Local mode has
a single on-device collection, so ``user_scope`` is accepted but not used
to filter.
"""

import json
import logging
from typing import List, Optional

from sleeptrack.exceptions import MalformedDataError, RecordNotFoundError, wrap_storage_exception
from sleeptrack.models.sleep import SleepEntry
from sleeptrack.models.settings import UserSettings
from sleeptrack.storage.base import SettingsBackend, SleepEntryBackend
from sleeptrack.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ENTRIES_KEY = "@sleep_tracker_entries"
SETTINGS_KEY = "@sleep_tracker_settings"


async def _read_blob(store: KeyValueStore, key: str, operation: str):
    try:
        raw = await store.get_item(key)
        return json.loads(raw) if raw else None
    except Exception as e:
        raise wrap_storage_exception(e, operation=operation, context={"key": key})


async def _write_blob(store: KeyValueStore, key: str, payload, operation: str) -> None:
    try:
        await store.set_item(key, json.dumps(payload))
    except Exception as e:
        raise wrap_storage_exception(e, operation=operation, context={"key": key})


class LocalSleepBackend(SleepEntryBackend):
    """Sleep entries kept as a JSON array under one key"""

    def __init__(self, store: KeyValueStore, key: str = ENTRIES_KEY):
        self.store = store
        self.key = key

    async def _load(self, operation: str) -> List[SleepEntry]:
        data = await _read_blob(self.store, self.key, operation)
        if data is None:
            return []
        try:
            return [SleepEntry.model_validate(item) for item in data]
        except Exception as e:
            raise wrap_storage_exception(e, operation=operation, context={"key": self.key})

    async def _save(self, entries: List[SleepEntry], operation: str) -> None:
        payload = [entry.model_dump(mode="json", by_alias=True, exclude_none=True) for entry in entries]
        await _write_blob(self.store, self.key, payload, operation)

    async def list(self, user_scope: str) -> List[SleepEntry]:
        entries = await self._load("list_sleep_entries")
        logger.debug(f"Loaded {len(entries)} local sleep entries")
        return entries

    async def insert(self, entry: SleepEntry) -> SleepEntry:
        entries = await self._load("insert_sleep_entry")
        await self._save([entry] + entries, "insert_sleep_entry")
        logger.info(f"Saved local sleep entry {entry.id}")
        return entry

    async def replace(self, entry_id: str, entry: SleepEntry) -> SleepEntry:
        entries = await self._load("replace_sleep_entry")
        index = next((i for i, e in enumerate(entries) if e.id == entry_id), None)
        if index is None:
            raise RecordNotFoundError(
                f"Sleep entry {entry_id} not found",
                record_type="Sleep entry",
                record_id=entry_id,
                operation="replace_sleep_entry",
            )
        entries[index] = entry
        await self._save(entries, "replace_sleep_entry")
        logger.info(f"Updated local sleep entry {entry_id}")
        return entry

    async def delete(self, entry_id: str, user_scope: str) -> None:
        entries = await self._load("delete_sleep_entry")
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            raise RecordNotFoundError(
                f"Sleep entry {entry_id} not found",
                record_type="Sleep entry",
                record_id=entry_id,
                operation="delete_sleep_entry",
            )
        await self._save(remaining, "delete_sleep_entry")
        logger.info(f"Deleted local sleep entry {entry_id}")

    async def delete_all(self, user_scope: str) -> None:
        try:
            await self.store.remove_item(self.key)
        except Exception as e:
            raise wrap_storage_exception(e, operation="clear_sleep_entries", context={"key": self.key})
        logger.info("Cleared all local sleep entries")


class LocalSettingsBackend(SettingsBackend):
    """Settings records kept as a JSON object keyed by user id"""

    def __init__(self, store: KeyValueStore, key: str = SETTINGS_KEY):
        self.store = store
        self.key = key

    async def _load(self, operation: str) -> dict:
        data = await _read_blob(self.store, self.key, operation)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MalformedDataError(
                f"Settings blob under {self.key} is a {type(data).__name__}, expected an object",
                operation=operation,
                context={"key": self.key},
            )
        return data

    async def get(self, user_id: str) -> Optional[UserSettings]:
        records = await self._load("get_user_settings")
        record = records.get(user_id)
        if record is None:
            return None
        try:
            return UserSettings.model_validate(record)
        except Exception as e:
            raise wrap_storage_exception(e, operation="get_user_settings", user_id=user_id)

    async def _put(self, settings: UserSettings, operation: str, must_exist: bool) -> UserSettings:
        records = await self._load(operation)
        if must_exist and settings.user_id not in records:
            raise RecordNotFoundError(
                f"Settings for user {settings.user_id} not found",
                record_type="Settings",
                record_id=settings.user_id,
                user_id=settings.user_id,
                operation=operation,
            )
        records[settings.user_id] = settings.model_dump(mode="json", by_alias=True)
        await _write_blob(self.store, self.key, records, operation)
        return settings

    async def insert(self, settings: UserSettings) -> UserSettings:
        saved = await self._put(settings, "insert_user_settings", must_exist=False)
        logger.info(f"Created local settings for {settings.user_id}")
        return saved

    async def replace(self, user_id: str, settings: UserSettings) -> UserSettings:
        if settings.user_id != user_id:
            settings = settings.model_copy(update={"user_id": user_id})
        saved = await self._put(settings, "update_user_settings", must_exist=True)
        logger.info(f"Updated local settings for {user_id}")
        return saved
