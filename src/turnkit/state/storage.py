"""Backing stores for persisted turn state."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

type StoreItems = dict[str, dict[str, Any]]

STORAGE_FILE_SUFFIX = ".json"


class Storage(ABC):
    """Key/value store holding one flat JSON record per state scope."""

    @abstractmethod
    async def read(self, keys: Iterable[str]) -> StoreItems:
        """Return the records found for the given keys; missing keys are omitted."""

    @abstractmethod
    async def write(self, changes: StoreItems) -> None:
        """Insert or replace records."""

    @abstractmethod
    async def delete(self, keys: Iterable[str]) -> None:
        """Remove records; unknown keys are ignored."""


class MemoryStorage(Storage):
    """Process-local storage. Records are kept serialized so callers never share objects."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    async def read(self, keys: Iterable[str]) -> StoreItems:
        with self._lock:
            return {key: json.loads(self._items[key]) for key in keys if key in self._items}

    async def write(self, changes: StoreItems) -> None:
        encoded = {key: json.dumps(value, ensure_ascii=False) for key, value in changes.items()}
        with self._lock:
            self._items.update(encoded)

    async def delete(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._items.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._items)


class FileStorage(Storage):
    """One JSON file per record under a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser()
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    async def read(self, keys: Iterable[str]) -> StoreItems:
        items: StoreItems = {}
        with self._lock:
            for key in keys:
                path = self._path_for(key)
                if not path.exists():
                    continue
                try:
                    payload = json.loads(path.read_text(encoding="utf-8"))
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    items[key] = payload
        return items

    async def write(self, changes: StoreItems) -> None:
        with self._lock:
            for key, value in changes.items():
                path = self._path_for(key)
                tmp_path = path.with_suffix(".tmp")
                tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
                tmp_path.replace(path)

    async def delete(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._path_for(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(unquote(path.stem) for path in self.root.glob(f"*{STORAGE_FILE_SUFFIX}"))

    def _path_for(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}{STORAGE_FILE_SUFFIX}"
