"""
SQL store adapter on SQLAlchemy.

Responsibility:
    Implement ``Store`` over the ``kv_store`` table.  Prefix scans are key
    range queries (``prefix <= key < prefix_upper_bound(prefix)``) served by
    the primary key index and fetched in pages of ``page_size`` rows, so a
    scan never materializes one unbounded result set.

Failure modes:
    - Driver errors become StoreUnavailableError (``retryable=True`` for
      reads, ``False`` for writes).
    - A failed compare-and-set (version mismatch or duplicate insert)
      becomes OptimisticLockError.

Range scans assume a byte-ordered key collation (SQLite default; use
``COLLATE "C"`` on the PostgreSQL column).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cleanops_kernel.db.engine import get_session_factory, session_scope
from cleanops_kernel.db.models import KVEntryModel
from cleanops_kernel.exceptions import OptimisticLockError, StoreUnavailableError
from cleanops_kernel.logging_config import get_logger
from cleanops_kernel.store.base import Store, StoreEntry, prefix_upper_bound

logger = get_logger("store.sql")

DEFAULT_PAGE_SIZE = 1000


def _entry(row: KVEntryModel) -> StoreEntry:
    return StoreEntry(key=row.key, value=dict(row.value), version=row.version)


class SqlStore(Store):
    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._factory = session_factory or get_session_factory()
        self._page_size = page_size

    def _unavailable(
        self, operation: str, key: str | None, exc: Exception, retryable: bool
    ) -> StoreUnavailableError:
        logger.warning(
            "store_unavailable",
            extra={"operation": operation, "key": key, "retryable": retryable},
            exc_info=exc,
        )
        return StoreUnavailableError(operation, key, str(exc), retryable=retryable)

    # -- reads ---------------------------------------------------------------

    def get_entry(self, key: str) -> StoreEntry | None:
        try:
            with session_scope(self._factory) as session:
                row = session.get(KVEntryModel, key)
                return _entry(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise self._unavailable("get", key, exc, retryable=True) from exc

    def scan_items(self, prefix: str) -> list[StoreEntry]:
        upper = prefix_upper_bound(prefix)
        entries: list[StoreEntry] = []
        cursor = prefix
        inclusive = True
        try:
            while True:
                with session_scope(self._factory) as session:
                    lower = (
                        KVEntryModel.key >= cursor if inclusive else KVEntryModel.key > cursor
                    )
                    rows = session.scalars(
                        select(KVEntryModel)
                        .where(lower, KVEntryModel.key < upper)
                        .order_by(KVEntryModel.key)
                        .limit(self._page_size)
                    ).all()
                    page = [_entry(r) for r in rows]
                entries.extend(page)
                if len(page) < self._page_size:
                    return entries
                cursor = page[-1].key
                inclusive = False
        except SQLAlchemyError as exc:
            raise self._unavailable("scan", prefix, exc, retryable=True) from exc

    def last_before(self, prefix: str, bound: str) -> StoreEntry | None:
        upper = min(bound, prefix_upper_bound(prefix))
        try:
            with session_scope(self._factory) as session:
                row = session.scalars(
                    select(KVEntryModel)
                    .where(KVEntryModel.key >= prefix, KVEntryModel.key < upper)
                    .order_by(KVEntryModel.key.desc())
                    .limit(1)
                ).first()
                return _entry(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise self._unavailable("last_before", prefix, exc, retryable=True) from exc

    # -- writes --------------------------------------------------------------

    def set(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int | None = None,
    ) -> int:
        now = datetime.now(timezone.utc)
        try:
            with session_scope(self._factory) as session:
                if expected_version == 0:
                    session.add(
                        KVEntryModel(key=key, value=value, version=1, updated_at=now)
                    )
                    session.flush()
                    return 1

                if expected_version is not None:
                    result = session.execute(
                        update(KVEntryModel)
                        .where(
                            KVEntryModel.key == key,
                            KVEntryModel.version == expected_version,
                        )
                        .values(value=value, version=expected_version + 1, updated_at=now)
                    )
                    if result.rowcount != 1:
                        row = session.get(KVEntryModel, key)
                        raise OptimisticLockError(
                            key, expected_version, row.version if row is not None else None
                        )
                    return expected_version + 1

                row = session.get(KVEntryModel, key)
                if row is None:
                    session.add(
                        KVEntryModel(key=key, value=value, version=1, updated_at=now)
                    )
                    return 1
                row.value = value
                row.version = row.version + 1
                row.updated_at = now
                return row.version
        except IntegrityError as exc:
            if expected_version == 0:
                raise OptimisticLockError(key, 0, None) from exc
            raise self._unavailable("set", key, exc, retryable=False) from exc
        except SQLAlchemyError as exc:
            raise self._unavailable("set", key, exc, retryable=False) from exc

    def delete(self, key: str) -> bool:
        try:
            with session_scope(self._factory) as session:
                row = session.get(KVEntryModel, key)
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise self._unavailable("delete", key, exc, retryable=False) from exc
