"""
Module: cleanops_engines.recognition
Responsibility:
    Decide how much of a work order's ``paid_amount`` still has to be
    recognized, and build the income Transaction + Collection pair that
    recognizes it.  The service layer persists the plan; this module only
    computes it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Timestamps and ids are
    passed in by the caller.

Invariants enforced:
    - ``recognized(wo)`` is the sum of income transactions whose
      ``related_work_order_id`` is the work order.
    - ``delta = paid_amount - recognized(wo)``, clamped at zero.  A zero
      delta yields an empty plan: nothing is written.
    - Transaction and Collection carry the same amount, both dated to the
      work order's date, and the Collection points at its Transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from cleanops_engines.tracer import traced_engine
from cleanops_kernel.domain.entities import (
    Collection,
    Transaction,
    TransactionType,
    WorkOrder,
)
from cleanops_kernel.domain.money import ZERO, round_money, sum_money


def recognized_amount(work_order_id: str, transactions: Iterable[Transaction]) -> Decimal:
    """Sum of income recognized so far for ``work_order_id``."""
    return sum_money(
        t.amount
        for t in transactions
        if t.type == TransactionType.INCOME and t.related_work_order_id == work_order_id
    )


def unrecognized_delta(paid_amount: Decimal, recognized: Decimal) -> Decimal:
    delta = round_money(paid_amount - recognized)
    return delta if delta > 0 else ZERO


@dataclass(frozen=True)
class RecognitionPlan:
    work_order_id: str
    delta: Decimal
    transaction: Transaction | None = None
    collection: Collection | None = None

    @property
    def is_empty(self) -> bool:
        return self.transaction is None


def build_collection(
    work_order: WorkOrder,
    transaction: Transaction,
    collection_id: str,
    created_by: str | None,
    created_at: datetime,
) -> Collection:
    """The Collection mirroring an income Transaction of ``work_order``."""
    return Collection(
        id=collection_id,
        customer_id=work_order.customer_id,
        customer_name=work_order.customer_name,
        amount=transaction.amount,
        date=work_order.date,
        work_date=work_order.date,
        description=transaction.description,
        related_work_order_id=work_order.id,
        related_transaction_id=transaction.id,
        created_by=created_by,
        created_at=created_at,
    )


@traced_engine("recognition", "1.0", fingerprint_fields=("recognized", "category"))
def plan_recognition(
    work_order: WorkOrder,
    recognized: Decimal,
    category: str,
    transaction_id: str,
    collection_id: str,
    created_by: str | None,
    created_at: datetime,
) -> RecognitionPlan:
    """
    Plan the writes needed to bring ``recognized`` up to ``paid_amount``.

    Over-recognition (``recognized > paid_amount``) is not corrected here;
    it yields an empty plan and is surfaced by the reconciliation engine.
    """
    delta = unrecognized_delta(work_order.paid_amount, recognized)
    if delta == ZERO:
        return RecognitionPlan(work_order_id=work_order.id, delta=ZERO)

    description = f"Work order payment - {work_order.customer_name or work_order.customer_id}"
    transaction = Transaction(
        id=transaction_id,
        type=TransactionType.INCOME,
        amount=delta,
        date=work_order.date,
        category=category,
        description=description,
        related_customer_id=work_order.customer_id,
        related_work_order_id=work_order.id,
        created_by=created_by,
        created_at=created_at,
    )
    return RecognitionPlan(
        work_order_id=work_order.id,
        delta=delta,
        transaction=transaction,
        collection=build_collection(
            work_order, transaction, collection_id, created_by, created_at
        ),
    )
