"""
Key-value storage boundary
The dispute store reads and writes whole collections as JSON strings under fixed keys
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import structlog

logger = structlog.get_logger()


class StorageError(Exception):
    """Raised when a storage backend cannot read or write a key"""


class KeyValueStorage(ABC):
    """Asynchronous string key-value store"""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never written"""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value"""


class InMemoryStorage(KeyValueStorage):
    """Dictionary-backed storage, used by tests and the demo"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def snapshot(self) -> Dict[str, str]:
        return dict(self._items)


class JsonFileStorage(KeyValueStorage):
    """
    Storage backed by a single JSON document on disk
    The document maps each key to its string value
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            data = json.loads(self.file_path.read_text(encoding='utf-8') or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read storage file {self.file_path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self.file_path} does not contain a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2), encoding='utf-8')
            tmp_path.replace(self.file_path)
        except OSError as e:
            raise StorageError(f"Failed to write storage file {self.file_path}: {e}")

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = value
            await asyncio.to_thread(self._write_all, data)
            logger.debug("Storage key written", key=key, file_path=str(self.file_path))
