"""
Storage backends for pollstate.

Configuration via environment:
    POLLSTATE_STORAGE_BACKEND=memory  # or 'file', 'redis'
    POLLSTATE_STORAGE_PATH=~/.pollstate/state.json
    POLLSTATE_REDIS_URL=redis://localhost:6379/0

Example:
    >>> from pollstate.storage import get_storage, InMemoryStorage
    >>>
    >>> storage = get_storage()          # from environment
    >>> storage = get_storage("file")    # by name
"""

from __future__ import annotations

import os

from pollstate.core.exceptions import ConfigurationError
from pollstate.storage.base import (
    StorageBackend,
    get_storage_backend,
    list_storage_backends,
    register_storage_backend,
)
from pollstate.storage.file import FileStorage
from pollstate.storage.memory import InMemoryStorage
from pollstate.storage.redis import RedisStorage


def get_storage(backend_name: str | None = None) -> StorageBackend:
    """
    Get storage backend from environment or by name.

    Args:
        backend_name: Backend name, or None to read from POLLSTATE_STORAGE_BACKEND env

    Raises:
        ConfigurationError: If backend name is unknown
    """
    if backend_name is None:
        backend_name = os.environ.get("POLLSTATE_STORAGE_BACKEND", "memory")

    backend_class = get_storage_backend(backend_name)

    if backend_class is None:
        available = list_storage_backends()
        raise ConfigurationError(
            f"Unknown storage backend: '{backend_name}'. Available: {', '.join(available)}"
        )

    return backend_class()


__all__ = [
    "StorageBackend",
    "FileStorage",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    "get_storage_backend",
    "list_storage_backends",
    "register_storage_backend",
]
