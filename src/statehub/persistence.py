"""
Durable key/value stores used by durable states.

A durable state writes its value through to the store under its own name on
every change, and is restored from the store when it is registered again after
a restart.

Stores:
- JsonFileStore: one JSON document on disk, rewritten atomically on each set
- MemoryStore: in-process dict, useful for tests and ephemeral hubs
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from .errors import StoreError, StoreWriteError

logger = logging.getLogger(__name__)

_MISSING = object()


class DurableStore(ABC):
    """
    Key/value contract consumed by durable states.

    set() either completes or raises StoreWriteError before returning.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Persist value under key."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return all stored keys."""

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING


class MemoryStore(DurableStore):
    """Dict-backed store. Values survive only as long as the instance does."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(DurableStore):
    """
    Store backed by a single JSON file.

    The whole document is loaded once at construction and rewritten on every
    set() via a temp file + os.replace, so a crash mid-write leaves the
    previous document intact.

    Args:
        path: Location of the JSON document. Parent directories are created.

    Raises:
        StoreError: If an existing file cannot be read or is not a JSON object.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.debug(f"No store file at {self.path}, starting empty")
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Store file {self.path} does not contain a JSON object")

        logger.info(f"Loaded {len(data)} keys from {self.path}")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            updated = dict(self._data)
            updated[key] = value
            try:
                self._write(updated)
            except (OSError, TypeError, ValueError) as e:
                raise StoreWriteError(key, e) from e
            self._data = updated

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def _write(self, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, indent=2, sort_keys=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".store-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


__all__ = ["DurableStore", "MemoryStore", "JsonFileStore"]
