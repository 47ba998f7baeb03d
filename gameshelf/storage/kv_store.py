"""
On-device key-value storage.

KeyValueStore is the contract the guest repositories use; values are strings
(callers serialize JSON themselves). JsonFileKeyValueStore keeps every key in
one JSON object on disk.
"""
import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def multi_remove(self, keys: Iterable[str]) -> None:
        pass


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data
        self._data = {}
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._data = {str(k): v for k, v in loaded.items()}
            except Exception as e:
                logger.error(f"[DeviceStore] Error loading {self.path}: {e}")
        return self._data

    def _save(self) -> None:
        os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w') as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp_path, self.path)

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._load().get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            self._load()[key] = value
            self._save()

    async def multi_remove(self, keys: Iterable[str]) -> None:
        async with self._lock:
            data = self._load()
            for key in keys:
                data.pop(key, None)
            self._save()
