"""
Key-value stores behind the local backend

The local backend keeps each collection as one string blob under a fixed
key, so all it needs is get/set/remove. Two stores are available:
- FileKeyValueStore: one file per key under DATA_PATH (on-device)
- RedisKeyValueStore: redis.asyncio client
Errors are raised to the caller; the backend wraps them as StorageError.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import redis.asyncio as redis

from sleeptrack.config import DATA_PATH, REDIS_URL

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(ABC):
    """Async string storage addressed by key"""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Stored value or None"""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store value, replacing any previous one"""

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove key; missing keys are fine"""


class FileKeyValueStore(KeyValueStore):
    """One file per key in a data directory"""

    def __init__(self, data_path: Path = DATA_PATH):
        self.data_path = Path(data_path)

    def path_for(self, key: str) -> Path:
        """File backing ``key`` (unsafe characters replaced)"""
        filename = _UNSAFE_KEY_CHARS.sub("_", key).strip("_") or "default"
        return self.data_path / f"{filename}.json"

    async def get_item(self, key: str) -> Optional[str]:
        filepath = self.path_for(key)
        if not filepath.exists():
            return None
        return filepath.read_text(encoding="utf-8")

    async def set_item(self, key: str, value: str) -> None:
        filepath = self.path_for(key)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        # Write then rename so a crash never leaves half a blob behind
        tmp_path = filepath.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(filepath)
        logger.debug(f"Wrote {len(value)} bytes to {filepath}")

    async def remove_item(self, key: str) -> None:
        filepath = self.path_for(key)
        filepath.unlink(missing_ok=True)
        logger.debug(f"Removed {filepath}")


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed key-value store

    Call ``connect()`` before use and ``close()`` on shutdown.
    """

    def __init__(self, redis_url: str = REDIS_URL, client: Optional[Any] = None):
        self.redis_url = redis_url
        self._client = client

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self._client is not None:
            return
        self._client = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=10,
        )
        # Test connection
        await self._client.ping()
        logger.info(f"Redis connected: {self.redis_url}")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    def _require_client(self) -> Any:
        if self._client is None:
            raise RuntimeError("Redis store not connected")
        return self._client

    async def get_item(self, key: str) -> Optional[str]:
        value = await self._require_client().get(key)
        logger.debug(f"Redis GET {key}: {'hit' if value is not None else 'miss'}")
        return value

    async def set_item(self, key: str, value: str) -> None:
        await self._require_client().set(key, value)

    async def remove_item(self, key: str) -> None:
        await self._require_client().delete(key)
