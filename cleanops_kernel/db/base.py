"""
Module: cleanops_kernel.db.base
Responsibility: Declarative base for the SQLAlchemy models backing the SQL
    store adapter.
Architecture position: Kernel > DB.  Lowest-level import target within the
    db package.  MUST NOT import from store/, services/ or outer layers.

Invariants enforced:
    - datetime maps to DateTime(timezone=True) -- always timezone-aware.
    - int maps to BigInteger -- safe for monotonic version counters.
"""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import JSON, BigInteger, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all cleanops ORM models."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
        dict[str, Any]: JSON,
    }
