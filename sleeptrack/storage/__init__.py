"""Persistence backends for sleep entries and settings"""
from sleeptrack.storage.base import SettingsBackend, SleepEntryBackend
from sleeptrack.storage.kv_store import FileKeyValueStore, KeyValueStore, RedisKeyValueStore
from sleeptrack.storage.local import LocalSettingsBackend, LocalSleepBackend
from sleeptrack.storage.remote import PostgresSettingsBackend, PostgresSleepBackend

__all__ = [
    "SettingsBackend",
    "SleepEntryBackend",
    "KeyValueStore",
    "FileKeyValueStore",
    "RedisKeyValueStore",
    "LocalSettingsBackend",
    "LocalSleepBackend",
    "PostgresSettingsBackend",
    "PostgresSleepBackend",
]
