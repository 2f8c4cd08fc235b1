"""
RecognitionWriter -- persists income Transaction + Collection pairs.

Responsibility:
    Own every write of recognized money.  Reads ``recognized(wo)`` from the
    work order's income lines, asks the pure recognition engine for a plan,
    and writes the Transaction and then its Collection.

Architecture: cleanops_services -- imperative shell over
    ``cleanops_engines.recognition``.

Invariants enforced:
    - Every recognition is delta-gated against the income lines already in
      the store, so repeating a recognition never double-counts.
    - Income lines are numbered per work order and written with
      ``expected_version=0``: of two concurrent recognitions computed from
      the same snapshot, exactly one lands; the other re-reads and
      recomputes (usually to a zero delta).

Failure modes:
    - RecognitionIncompleteError when the store fails after the work order
      was saved but before both halves of the pair landed.  The error and
      the ``recognition_incomplete`` log record carry which writes
      succeeded; the reconciliation pass backfills the rest.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from uuid import uuid4

from cleanops_engines.recognition import (
    RecognitionPlan,
    build_collection,
    plan_recognition,
    recognized_amount,
)
from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.domain.entities import Collection, Transaction, WorkOrder
from cleanops_kernel.domain.identity import Caller
from cleanops_kernel.exceptions import (
    OptimisticLockError,
    RecognitionIncompleteError,
    StoreUnavailableError,
)
from cleanops_kernel.logging_config import get_logger
from cleanops_kernel.store.base import Store, with_read_retry
from cleanops_kernel.store.keys import (
    work_order_collection_key,
    work_order_collections_prefix,
    work_order_transaction_key,
    work_order_transactions_prefix,
)

logger = get_logger("services.recognition")

_MAX_CLAIM_ATTEMPTS = 3


def new_id() -> str:
    return uuid4().hex


class RecognitionWriter:
    def __init__(
        self,
        store: Store,
        clock: Clock | None = None,
        id_factory: Callable[[], str] = new_id,
        read_retry_attempts: int = 2,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._new_id = id_factory
        self._attempts = read_retry_attempts

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def transactions(self, work_order_id: str) -> list[Transaction]:
        entries = with_read_retry(
            lambda: self._store.scan_items(work_order_transactions_prefix(work_order_id)),
            self._attempts,
        )
        return [Transaction.from_record(e.value) for e in entries]

    def collections(self, work_order_id: str) -> list[Collection]:
        entries = with_read_retry(
            lambda: self._store.scan_items(work_order_collections_prefix(work_order_id)),
            self._attempts,
        )
        return [Collection.from_record(e.value) for e in entries]

    def recognized(self, work_order_id: str) -> Decimal:
        return recognized_amount(work_order_id, self.transactions(work_order_id))

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def recognize(
        self,
        work_order: WorkOrder,
        category: str,
        caller: Caller | None = None,
    ) -> RecognitionPlan:
        """Recognize ``paid_amount - recognized(wo)`` if positive."""
        created_by = caller.id if caller else None
        conflict: OptimisticLockError | None = None
        for attempt in range(1, _MAX_CLAIM_ATTEMPTS + 1):
            existing = self.transactions(work_order.id)
            plan = plan_recognition(
                work_order=work_order,
                recognized=recognized_amount(work_order.id, existing),
                category=category,
                transaction_id=self._new_id(),
                collection_id=self._new_id(),
                created_by=created_by,
                created_at=self._clock.now(),
            )
            if plan.is_empty:
                return plan
            tx_key = work_order_transaction_key(work_order.id, len(existing))
            try:
                self._store.set(tx_key, plan.transaction.to_record(), expected_version=0)
            except OptimisticLockError as exc:
                logger.info(
                    "recognition_claim_lost",
                    extra={"work_order_id": work_order.id, "attempt": attempt},
                )
                conflict = exc
                continue
            except StoreUnavailableError as exc:
                raise self._incomplete(plan, transaction_written=False, exc=exc) from exc

            try:
                self._store.set(
                    work_order_collection_key(work_order.id, plan.transaction.id),
                    plan.collection.to_record(),
                    expected_version=0,
                )
            except StoreUnavailableError as exc:
                raise self._incomplete(plan, transaction_written=True, exc=exc) from exc

            logger.info(
                "payment_recognized",
                extra={
                    "work_order_id": work_order.id,
                    "delta": plan.delta,
                    "category": category,
                    "transaction_id": plan.transaction.id,
                    "collection_id": plan.collection.id,
                },
            )
            return plan

        # Every claim lost: the work order is saved but this delta is not.
        logger.error(
            "recognition_incomplete",
            extra={
                "work_order_id": work_order.id,
                "delta": plan.delta,
                "transaction_written": False,
                "collection_written": False,
                "claim_attempts": _MAX_CLAIM_ATTEMPTS,
            },
        )
        raise conflict

    def backfill_collection(
        self,
        work_order: WorkOrder,
        transaction: Transaction,
        caller: Caller | None = None,
    ) -> Collection:
        """Write the missing Collection for an income line of ``work_order``."""
        collection = build_collection(
            work_order,
            transaction,
            collection_id=self._new_id(),
            created_by=caller.id if caller else None,
            created_at=self._clock.now(),
        )
        self._store.set(
            work_order_collection_key(work_order.id, transaction.id),
            collection.to_record(),
            expected_version=0,
        )
        logger.info(
            "collection_backfilled",
            extra={
                "work_order_id": work_order.id,
                "transaction_id": transaction.id,
                "amount": transaction.amount,
            },
        )
        return collection

    def purge(self, work_order_id: str) -> tuple[int, int]:
        """Delete every income line and collection of a work order."""
        tx_entries = self._store.scan_items(work_order_transactions_prefix(work_order_id))
        col_entries = self._store.scan_items(work_order_collections_prefix(work_order_id))
        # Collections first: a crash part-way leaves transactions, which the
        # reconciliation pass reports, never unpaired collections.
        for entry in col_entries:
            self._store.delete(entry.key)
        for entry in tx_entries:
            self._store.delete(entry.key)
        return len(tx_entries), len(col_entries)

    def _incomplete(
        self,
        plan: RecognitionPlan,
        transaction_written: bool,
        exc: StoreUnavailableError,
    ) -> RecognitionIncompleteError:
        logger.error(
            "recognition_incomplete",
            extra={
                "work_order_id": plan.work_order_id,
                "delta": plan.delta,
                "transaction_written": transaction_written,
                "collection_written": False,
                "store_operation": exc.operation,
            },
        )
        return RecognitionIncompleteError(
            work_order_id=plan.work_order_id,
            delta=plan.delta,
            transaction_written=transaction_written,
            collection_written=False,
            reason=exc.reason,
        )
