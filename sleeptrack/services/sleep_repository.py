"""
SleepEntryRepository - Sleep entry CRUD and snapshot ownership

Owns the current user's sorted, in-memory list of sleep entries and keeps it
in step with the storage backend. One instance per signed-in session.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, List, Optional, Tuple

import pydantic

from sleeptrack.exceptions import AuthenticationError, StorageError, validation_error_from
from sleeptrack.models.sleep import SleepEntry, WeeklyStats
from sleeptrack.models.user import UserIdentity
from sleeptrack.services.weekly_stats import compute_weekly_stats
from sleeptrack.storage.base import SleepEntryBackend
from sleeptrack.utils.time_utils import TzLike, get_timezone

logger = logging.getLogger(__name__)


def sort_entries(entries: Iterable[SleepEntry]) -> List[SleepEntry]:
    """Most recent bedtime first; id breaks ties"""
    return sorted(entries, key=SleepEntry.sort_key, reverse=True)


class SleepEntryRepository:
    """
    Repository for one user's sleep entries.

    Responsibilities:
    - Load, add, update and delete entries through the backend
    - Derive duration from bedtime/wake time on every write
    - Keep the snapshot sorted by bedtime, newest first

    The snapshot list is replaced, never mutated in place, after each
    successful backend call. Concurrent callers therefore always read a
    complete list, and whichever operation finishes last decides it.
    A failed call leaves the snapshot as it was.
    """

    def __init__(self, backend: SleepEntryBackend, identity: UserIdentity, tz: TzLike = None):
        """
        Initialize SleepEntryRepository.

        Args:
            backend: Local or remote storage backend
            identity: Current user; unauthenticated sessions see no entries
            tz: Local timezone for statistics (defaults to config TIMEZONE)
        """
        self.backend = backend
        self.identity = identity
        self.tz = get_timezone(tz)
        self._entries: List[SleepEntry] = []
        self._pending = 0
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def entries(self) -> Tuple[SleepEntry, ...]:
        return tuple(self._entries)

    @property
    def loading(self) -> bool:
        """True while any operation is waiting on the backend"""
        return self._pending > 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, entry_id: str) -> Optional[SleepEntry]:
        """Look up an entry in the snapshot (no I/O)"""
        return next((e for e in self._entries if e.id == entry_id), None)

    def get_latest(self) -> Optional[SleepEntry]:
        """Entry with the most recent bedtime, if any"""
        return self._entries[0] if self._entries else None

    def weekly_stats(self, now: Optional[datetime] = None) -> WeeklyStats:
        """Trailing 7-day statistics over the current snapshot"""
        return compute_weekly_stats(self._entries, now=now, tz=self.tz)

    # ------------------------------------------------------------------
    # Backend operations
    # ------------------------------------------------------------------

    @property
    def _user_scope(self) -> str:
        return self.identity.user_id or ""

    def _require_auth(self, operation: str) -> None:
        if not self.identity.is_authenticated:
            raise AuthenticationError(
                f"Cannot {operation} without a signed-in user",
                operation=operation,
            )

    @asynccontextmanager
    async def _track(self, operation: str) -> AsyncIterator[None]:
        """Maintain the loading flag and record backend failures"""
        self._pending += 1
        try:
            yield
        except StorageError as e:
            self.error = e.user_message
            logger.error(f"{operation} failed for user {self.identity.user_id}: {e.message}")
            raise
        finally:
            self._pending -= 1

    def _build_entry(self, operation: str, **fields) -> SleepEntry:
        """SleepEntry.from_times with model errors reported as ValidationError"""
        try:
            return SleepEntry.from_times(user_id=self.identity.user_id, **fields)
        except pydantic.ValidationError as e:
            raise validation_error_from(e, user_id=self.identity.user_id, operation=operation)

    async def load(self) -> List[SleepEntry]:
        """
        Replace the snapshot with the backend's entries for this user.

        Returns:
            The new snapshot (newest first)

        Raises:
            StorageError: Backend failure; the previous snapshot is kept
        """
        if not self.identity.is_authenticated:
            self._entries = []
            self.error = None
            return []

        async with self._track("load"):
            stored = await self.backend.list(self._user_scope)

        self._entries = sort_entries(stored)
        self.error = None
        logger.info(f"Loaded {len(self._entries)} sleep entries for user {self.identity.user_id}")
        return list(self._entries)

    async def add(
        self,
        bedtime: datetime,
        wake_time: datetime,
        note: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> SleepEntry:
        """
        Record a new sleep entry.

        Duration is computed here from bedtime and wake time. No plausibility
        checks are made on the times themselves.

        Returns:
            The stored entry

        Raises:
            AuthenticationError: No signed-in user
            ValidationError: Note longer than 200 characters or quality outside 1..5
            StorageError: Backend write failed; nothing changed
        """
        self._require_auth("add sleep entry")
        entry = self._build_entry(
            "add",
            bedtime=bedtime,
            wake_time=wake_time,
            note=note,
            quality=quality,
        )

        async with self._track("add"):
            saved = await self.backend.insert(entry)

        # Usually the newest entry, but backfilled history must sort too
        self._entries = sort_entries([saved] + self._entries)
        logger.info(f"Added sleep entry {saved.id} ({saved.duration}h) for user {self.identity.user_id}")
        return saved

    async def update(
        self,
        entry_id: str,
        bedtime: datetime,
        wake_time: datetime,
        note: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> SleepEntry:
        """
        Fully replace an entry's times, note and quality.

        Raises:
            AuthenticationError: No signed-in user
            ValidationError: Invalid note or quality
            RecordNotFoundError: The backend has no entry with this id
            StorageError: Backend write failed; snapshot unchanged
        """
        self._require_auth("update sleep entry")
        existing = self.get(entry_id)
        entry = self._build_entry(
            "update",
            bedtime=bedtime,
            wake_time=wake_time,
            note=note,
            quality=quality,
            entry_id=entry_id,
            created_at=existing.created_at if existing else None,
        )

        async with self._track("update"):
            saved = await self.backend.replace(entry_id, entry)

        self._entries = sort_entries([saved] + [e for e in self._entries if e.id != entry_id])
        logger.info(f"Updated sleep entry {entry_id} for user {self.identity.user_id}")
        return saved

    async def delete(self, entry_id: str) -> bool:
        """
        Delete one entry.

        Returns:
            True once the entry is gone

        Raises:
            AuthenticationError: No signed-in user
            RecordNotFoundError: Nothing to delete; snapshot unchanged
            StorageError: Backend failure; snapshot unchanged
        """
        self._require_auth("delete sleep entry")

        async with self._track("delete"):
            await self.backend.delete(entry_id, self._user_scope)

        self._entries = [e for e in self._entries if e.id != entry_id]
        logger.info(f"Deleted sleep entry {entry_id} for user {self.identity.user_id}")
        return True

    async def clear_all(self) -> bool:
        """
        Permanently delete every entry of the current user.

        Raises:
            AuthenticationError: No signed-in user
            StorageError: Backend failure; snapshot unchanged
        """
        self._require_auth("clear sleep data")

        async with self._track("clear_all"):
            await self.backend.delete_all(self._user_scope)

        self._entries = []
        logger.info(f"Cleared all sleep entries for user {self.identity.user_id}")
        return True
