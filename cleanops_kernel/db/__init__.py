"""Database layer - engine, declarative base, store table."""

from cleanops_kernel.db.base import Base
from cleanops_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from cleanops_kernel.db.models import KVEntryModel

__all__ = [
    "Base",
    "KVEntryModel",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
