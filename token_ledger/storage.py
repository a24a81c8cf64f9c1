"""
storage.py - Persistent Store for ledger records

The ledger keeps its only durable copy of user, wallet and order data in a
key-value store holding one JSON blob per logical key (see core.ALL_KEYS).
The store is asynchronous: every call is a suspend point for the caller.

Store is a Protocol so any object with the four coroutines can be used.
Two implementations are provided:
    - MemoryStore: dict-backed, for tests and demos
    - JsonFileStore: one ``<key>.json`` file per key in a directory

There are no transactions across keys. Any I/O or encoding failure surfaces
as StorageError.
"""

from __future__ import annotations
import asyncio
import contextlib
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

from .core import StorageError


_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-@.]+$")


@runtime_checkable
class Store(Protocol):
    """
    Async key-value store over JSON-serializable values.

    get() returns None when the key is absent. All methods may raise
    StorageError.
    """

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def remove_all(self, keys: Iterable[str]) -> None:
        ...


def _dumps(key: str, value: Any) -> str:
    try:
        return json.dumps(value, sort_keys=True)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Cannot serialize value for {key!r}: {e}") from e


def _loads(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StorageError(f"Corrupt record for {key!r}: {e}") from e


class MemoryStore:
    """
    In-memory Store.

    Values are kept as JSON text, so callers never share mutable objects with
    the store and anything that would not survive a real store fails here too.

    Example:
        store = MemoryStore()
        await store.set("role", "student")
        await store.get("role")   # "student"
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = _dumps(key, value)

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return _loads(key, raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = _dumps(key, value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def remove_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        """List stored keys (sorted)."""
        return sorted(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """
    Directory-backed Store: each key lives in ``<directory>/<key>.json``.

    Writes go to a temporary file that is then renamed over the target, so a
    reader never sees a half-written record. Blocking file I/O runs in a
    worker thread via asyncio.to_thread.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        return _loads(key, raw)

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        raw = _dumps(key, value)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(raw, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove {path}: {e}") from e

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def remove_all(self, keys: Iterable[str]) -> None:
        for key in list(keys):
            await asyncio.to_thread(self._remove, key)
