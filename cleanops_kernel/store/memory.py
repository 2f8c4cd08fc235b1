"""
In-process store adapter.

Keys are kept in a sorted list beside the value map so prefix scans and
``last_before`` are bisections rather than full sweeps.  Values are held as
JSON text, which gives callers copy semantics and rejects anything the SQL
adapter's JSON column would reject.  A single re-entrant lock serializes
every operation, so compare-and-set is atomic across threads.
"""

from __future__ import annotations

import bisect
import json
import threading
from typing import Any

from cleanops_kernel.exceptions import OptimisticLockError
from cleanops_kernel.store.base import Store, StoreEntry, prefix_upper_bound


class MemoryStore(Store):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, tuple[str, int]] = {}
        self._keys: list[str] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def _entry(self, key: str) -> StoreEntry:
        text, version = self._data[key]
        return StoreEntry(key=key, value=json.loads(text), version=version)

    def get_entry(self, key: str) -> StoreEntry | None:
        with self._lock:
            if key not in self._data:
                return None
            return self._entry(key)

    def set(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int | None = None,
    ) -> int:
        text = json.dumps(value, sort_keys=True)
        with self._lock:
            current = self._data.get(key)
            current_version = current[1] if current is not None else 0
            if expected_version is not None and expected_version != current_version:
                raise OptimisticLockError(
                    key, expected_version, current_version if current else None
                )
            new_version = current_version + 1
            if current is None:
                bisect.insort(self._keys, key)
            self._data[key] = (text, new_version)
            return new_version

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            del self._data[key]
            idx = bisect.bisect_left(self._keys, key)
            del self._keys[idx]
            return True

    def scan_items(self, prefix: str) -> list[StoreEntry]:
        with self._lock:
            lo = bisect.bisect_left(self._keys, prefix)
            hi = bisect.bisect_left(self._keys, prefix_upper_bound(prefix))
            return [self._entry(k) for k in self._keys[lo:hi]]

    def last_before(self, prefix: str, bound: str) -> StoreEntry | None:
        with self._lock:
            upper = min(bound, prefix_upper_bound(prefix))
            idx = bisect.bisect_left(self._keys, upper) - 1
            if idx < 0:
                return None
            key = self._keys[idx]
            if not key.startswith(prefix):
                return None
            return self._entry(key)
