"""
Key-value store port and in-memory implementation.

Why:
    Every portal record (identities, attendance, leaves, assignments) lives in
    a flat key-value table addressed by prefixed string keys. Keeping the port
    tiny (get/set/delete/prefix scan) lets the domain services run unchanged
    against the in-memory store in tests and the Postgres store in production.

Concurrency:
    Writes are last-write-wins per key. Two conditional operations close the
    read-then-write gap for idempotency-guarded records:
    - `add` inserts only when the key is absent.
    - `compare_and_set` replaces the value only when it still equals `expected`.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional, Protocol


class KeyValueStoreProtocol(Protocol):
    """Minimal store used by the attendance services."""

    def get(self, key: str) -> Optional[dict]: ...

    def set(self, key: str, value: dict) -> None: ...

    def delete(self, key: str) -> None: ...

    def get_by_prefix(self, prefix: str) -> List[dict]: ...

    def add(self, key: str, value: dict) -> bool: ...

    def compare_and_set(self, key: str, expected: dict, value: dict) -> bool: ...


class InMemoryKeyValueStore:
    """Thread-safe dict-backed store for development and tests.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored records by accident.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def get_by_prefix(self, prefix: str) -> List[dict]:
        with self._lock:
            return [copy.deepcopy(v) for k, v in sorted(self._data.items()) if k.startswith(prefix)]

    def add(self, key: str, value: dict) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def compare_and_set(self, key: str, expected: dict, value: dict) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = copy.deepcopy(value)
            return True

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data.keys())


__all__ = ["KeyValueStoreProtocol", "InMemoryKeyValueStore"]
