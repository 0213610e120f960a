"""
In-Memory Storage Backend.

Default backend. Data is lost when the process ends, so a network selection
made here does not survive a restart; use the file or redis backend for that.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from pollstate.storage.base import StorageBackend, register_storage_backend


class InMemoryStorage(StorageBackend):
    """Collections of records held in nested dicts; records are copied in and out."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[key] = deepcopy(data)

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        record = self._collections.get(collection, {}).get(key)
        return None if record is None else deepcopy(record)

    async def delete(self, collection: str, key: str) -> bool:
        return self._collections.get(collection, {}).pop(key, None) is not None

    async def clear(self, collection: str) -> int:
        return len(self._collections.pop(collection, {}))


register_storage_backend("memory", InMemoryStorage)
