"""Key-ordered store contract and its adapters."""

from cleanops_kernel.store.base import Store, StoreEntry, with_read_retry
from cleanops_kernel.store.memory import MemoryStore
from cleanops_kernel.store.sql import SqlStore

__all__ = ["MemoryStore", "SqlStore", "Store", "StoreEntry", "with_read_retry"]
