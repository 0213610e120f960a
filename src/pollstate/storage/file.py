"""
JSON File Storage Backend.

Keeps every collection in a single JSON document on disk, rewritten in full
on each change. Meant for one process on one machine, the way a browser keeps
settings in local storage.
"""

from __future__ import annotations

import json
import os
import tempfile
from copy import deepcopy
from pathlib import Path
from typing import Any

from pollstate.core.exceptions import ConfigurationError
from pollstate.core.logging import get_logger
from pollstate.storage.base import StorageBackend, register_storage_backend

logger = get_logger("storage.file")

DEFAULT_PATH = Path.home() / ".pollstate" / "state.json"


class FileStorage(StorageBackend):
    """File-backed storage backend."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        raw = path or os.environ.get("POLLSTATE_STORAGE_PATH")
        self._path = Path(raw) if raw else DEFAULT_PATH

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, dict[str, dict[str, Any]]]:
        if not self._path.exists():
            return {}
        try:
            content = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Ignoring unreadable state file {self._path}")
            return {}
        if not isinstance(content, dict):
            logger.warning(f"Ignoring malformed state file {self._path}")
            return {}
        return content

    def _write(self, content: dict[str, dict[str, dict[str, Any]]]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create storage directory {self._path.parent}: {e}"
            ) from e
        # Replace atomically so a crash never leaves a half-written file
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(content, f, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
    ) -> None:
        content = self._read()
        content.setdefault(collection, {})[key] = deepcopy(data)
        self._write(content)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        record = self._read().get(collection, {}).get(key)
        return record if isinstance(record, dict) else None

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        content = self._read()
        coll = content.get(collection, {})
        if key not in coll:
            return False
        del coll[key]
        self._write(content)
        return True

    async def clear(self, collection: str) -> int:
        content = self._read()
        count = len(content.pop(collection, {}))
        if count:
            self._write(content)
        return count

    async def health_check(self) -> bool:
        parent = self._path.parent
        return os.access(parent, os.W_OK) if parent.exists() else True


register_storage_backend("file", FileStorage)
