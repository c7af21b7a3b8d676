"""Key/value storage for the auto-restart sentinel.

The prober persists exactly one flag: while it is running with
``persist=True`` the key :data:`PING_ENABLED_KEY` holds ``"1"``. An
external supervisor that finds the flag after a crash knows the process
intended to keep probing and can restart it.

Two implementations are provided:

- :class:`InMemoryStorage`: process-local; a shared default instance is
  used when nothing is injected.
- :class:`JsonFileStorage`: a JSON object on disk, so the flag outlives
  the process.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from keepwarm.logging import get_logger

logger = get_logger(__name__)

PING_ENABLED_KEY = "ping.enabled"
"""Sentinel key written while a persisting prober is running."""

PING_ENABLED_VALUE = "1"


@runtime_checkable
class StorageLike(Protocol):
    """Minimal string key/value surface used for the sentinel."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryStorage:
    """Dictionary-backed storage, local to the current process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Storage backed by a JSON object in a single file.

    Every write replaces the file atomically (temporary file in the same
    directory followed by ``os.replace``) so a crash mid-write never leaves
    a truncated file behind. A missing file reads as empty.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._load()
            items[key] = value
            self._save(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load()
            if key not in items:
                return
            del items[key]
            self._save(items)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d key(s) to %s", len(items), self.path)


_default_storage = InMemoryStorage()


def get_default_storage() -> InMemoryStorage:
    """Return the process-wide storage used when none is injected."""
    return _default_storage


def should_auto_restart(storage: StorageLike | None = None) -> bool:
    """Return True if the auto-restart sentinel is present in ``storage``.

    Args:
        storage: Storage to inspect. Defaults to the process-wide in-memory store.
    """
    store = storage if storage is not None else get_default_storage()
    return store.get_item(PING_ENABLED_KEY) == PING_ENABLED_VALUE


__all__ = [
    "PING_ENABLED_KEY",
    "PING_ENABLED_VALUE",
    "InMemoryStorage",
    "JsonFileStorage",
    "StorageLike",
    "get_default_storage",
    "should_auto_restart",
]
