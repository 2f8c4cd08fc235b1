"""
Module: cleanops_kernel.db.models
Responsibility: ORM model for the key-ordered store table.

    kv_store
        key         VARCHAR(512) PRIMARY KEY   ordered scans use this index
        value       JSON                       entity record
        version     BIGINT                     compare-and-set counter
        updated_at  TIMESTAMPTZ
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from cleanops_kernel.db.base import Base


class KVEntryModel(Base):
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<KVEntryModel {self.key} v{self.version}>"
