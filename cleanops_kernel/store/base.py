"""
Store contract -- the key-ordered persistence collaborator.

Responsibility:
    Define the narrow interface every service talks to: point reads and
    writes of JSON-compatible dict values, prefix scans in key order, and a
    compare-and-set on a per-key version counter.

Architecture position:
    Kernel > Store.  Services depend on ``Store``; adapters (``MemoryStore``,
    ``SqlStore``) implement it.  Engines never see it.

Invariants enforced:
    - Every successful ``set`` bumps the key's version by one.  A new key
      starts at version 1.
    - ``set(..., expected_version=0)`` succeeds only if the key is absent;
      ``expected_version=n`` only if the current version is ``n``.
    - Scans return entries in ascending key order regardless of paging.

Failure modes:
    - OptimisticLockError on a failed compare-and-set.
    - StoreUnavailableError on adapter I/O failure (``retryable=True`` for
      reads, ``False`` for writes).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from cleanops_kernel.exceptions import StoreUnavailableError
from cleanops_kernel.logging_config import get_logger

logger = get_logger("store")

T = TypeVar("T")


@dataclass(frozen=True)
class StoreEntry:
    key: str
    value: dict[str, Any]
    version: int


def prefix_upper_bound(prefix: str) -> str:
    """Smallest string greater than every string starting with ``prefix``."""
    if not prefix:
        raise ValueError("prefix must not be empty")
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class Store(ABC):
    """Key-ordered JSON store with per-key versions."""

    @abstractmethod
    def get_entry(self, key: str) -> StoreEntry | None:
        """Return the entry at ``key`` or None."""

    @abstractmethod
    def set(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int | None = None,
    ) -> int:
        """Write ``value`` at ``key`` and return the new version."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False if it did not exist."""

    @abstractmethod
    def scan_items(self, prefix: str) -> list[StoreEntry]:
        """All entries whose key starts with ``prefix``, in key order."""

    @abstractmethod
    def last_before(self, prefix: str, bound: str) -> StoreEntry | None:
        """Greatest entry with key starting with ``prefix`` and ``key < bound``."""

    def get(self, key: str) -> dict[str, Any] | None:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def scan_by_prefix(self, prefix: str) -> list[dict[str, Any]]:
        return [entry.value for entry in self.scan_items(prefix)]


def with_read_retry(fn: Callable[[], T], attempts: int = 2) -> T:
    """
    Run a read, retrying ``StoreUnavailableError`` marked retryable.

    Writes must never go through this helper: a write that may or may not
    have landed is re-checked by the caller instead.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except StoreUnavailableError as exc:
            if not exc.retryable or attempt == attempts:
                raise
            logger.warning(
                "store_read_retry",
                extra={
                    "operation": exc.operation,
                    "key": exc.key,
                    "attempt": attempt,
                    "max_attempts": attempts,
                },
            )
    raise AssertionError("unreachable")
