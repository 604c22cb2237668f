"""
Persistence contracts shared by the local and remote backends

Both implementations keep the same field set and the same error taxonomy:
RecordNotFoundError when an id is absent, StorageError (or a subclass) for
anything the transport rejects.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from sleeptrack.models.sleep import SleepEntry
from sleeptrack.models.settings import UserSettings


class SleepEntryBackend(ABC):
    """CRUD over persisted sleep entries"""

    @abstractmethod
    async def list(self, user_scope: str) -> List[SleepEntry]:
        """All entries owned by ``user_scope``, in no particular order"""

    @abstractmethod
    async def insert(self, entry: SleepEntry) -> SleepEntry:
        """Persist a new entry and return the stored version"""

    @abstractmethod
    async def replace(self, entry_id: str, entry: SleepEntry) -> SleepEntry:
        """Overwrite an existing entry; RecordNotFoundError if absent"""

    @abstractmethod
    async def delete(self, entry_id: str, user_scope: str) -> None:
        """Remove one entry owned by ``user_scope``; RecordNotFoundError if absent"""

    @abstractmethod
    async def delete_all(self, user_scope: str) -> None:
        """Remove every entry owned by ``user_scope``"""


class SettingsBackend(ABC):
    """Storage for the single settings record of each user"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserSettings]:
        """Stored settings or None when the user has none yet"""

    @abstractmethod
    async def insert(self, settings: UserSettings) -> UserSettings:
        """Create the settings record"""

    @abstractmethod
    async def replace(self, user_id: str, settings: UserSettings) -> UserSettings:
        """Overwrite the settings record; RecordNotFoundError if absent"""
