"""
Abstract Storage Backend for pollstate.

Small key-value persistence used for settings that must survive a restart,
such as the selected network.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Records live in named collections and are JSON-serializable dicts.
    """

    @abstractmethod
    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        """
        Save data to storage, replacing any existing record.

        Args:
            collection: Collection name
            key: Unique key for the record
            data: Data to store (must be JSON-serializable)
        """
        ...

    @abstractmethod
    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        """
        Get data from storage.

        Returns:
            Data dict or None if not found
        """
        ...

    @abstractmethod
    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        """
        Delete data from storage.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def clear(self, collection: str) -> int:
        """
        Clear all records from a collection.

        Returns:
            Number of records deleted
        """
        ...

    async def health_check(self) -> bool:
        """Check if storage is healthy and connected."""
        return True

    async def close(self) -> None:
        """Release any held connections."""
        return None


# Storage backend registry for dependency injection
_STORAGE_BACKENDS: dict[str, type[StorageBackend]] = {}


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    """Register a storage backend by name."""
    _STORAGE_BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    """Get a registered storage backend by name."""
    return _STORAGE_BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    """List all registered storage backend names."""
    return list(_STORAGE_BACKENDS.keys())
