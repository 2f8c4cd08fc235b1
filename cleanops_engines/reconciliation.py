"""
Module: cleanops_engines.reconciliation
Responsibility:
    Compare a work order's ``paid_amount`` with the income Transactions and
    Collections recorded against it, and classify every discrepancy.  The
    reconciliation service uses the findings to backfill what a failed
    two-write recognition left behind.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A Collection pairs with the Transaction named by its
      ``related_transaction_id``.  Collections written without that link
      pair with an unmatched Transaction of the same amount.
    - ``recognized`` counts Transactions only; Collections never count
      toward it.

Failure modes:
    - None: inconsistent input is the point, it is reported, not raised.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from cleanops_engines.recognition import recognized_amount
from cleanops_engines.tracer import traced_engine
from cleanops_kernel.domain.entities import (
    Collection,
    Transaction,
    TransactionType,
    WorkOrder,
)
from cleanops_kernel.domain.money import round_money


class FindingKind(str, Enum):
    MISSING_COLLECTION = "missing_collection"
    ORPHAN_COLLECTION = "orphan_collection"
    AMOUNT_MISMATCH = "amount_mismatch"
    UNRECOGNIZED_PAYMENT = "unrecognized_payment"
    OVER_RECOGNIZED = "over_recognized"


# Findings the reconciliation service can fix by writing.
REPAIRABLE_KINDS: frozenset[FindingKind] = frozenset({
    FindingKind.MISSING_COLLECTION,
    FindingKind.UNRECOGNIZED_PAYMENT,
})


@dataclass(frozen=True)
class Finding:
    kind: FindingKind
    work_order_id: str
    amount: Decimal
    transaction_id: str | None = None
    collection_id: str | None = None

    @property
    def repairable(self) -> bool:
        return self.kind in REPAIRABLE_KINDS


@dataclass(frozen=True)
class ReconciliationResult:
    work_order_id: str
    paid_amount: Decimal
    recognized: Decimal
    findings: tuple[Finding, ...] = ()
    repaired: tuple[Finding, ...] = field(default=())

    @property
    def is_consistent(self) -> bool:
        return not self.findings

    @property
    def unresolved(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f not in self.repaired)


def _pair(
    transactions: Sequence[Transaction],
    collections: Sequence[Collection],
) -> tuple[list[tuple[Transaction, Collection]], list[Transaction], list[Collection]]:
    by_id = {t.id: t for t in transactions}
    pairs: list[tuple[Transaction, Collection]] = []
    unlinked: list[Collection] = []
    orphans: list[Collection] = []
    matched: set[str] = set()

    for c in collections:
        if c.related_transaction_id is None:
            unlinked.append(c)
        elif c.related_transaction_id in by_id and c.related_transaction_id not in matched:
            pairs.append((by_id[c.related_transaction_id], c))
            matched.add(c.related_transaction_id)
        else:
            orphans.append(c)

    for c in unlinked:
        candidate = next(
            (t for t in transactions if t.id not in matched and t.amount == c.amount),
            None,
        )
        if candidate is None:
            orphans.append(c)
        else:
            pairs.append((candidate, c))
            matched.add(candidate.id)

    unpaired = [t for t in transactions if t.id not in matched]
    return pairs, unpaired, orphans


@traced_engine("reconciliation", "1.0")
def reconcile(
    work_order: WorkOrder,
    transactions: Sequence[Transaction],
    collections: Sequence[Collection],
) -> ReconciliationResult:
    """Classify every discrepancy between a work order and its recognition records."""
    income = sorted(
        (
            t for t in transactions
            if t.type == TransactionType.INCOME and t.related_work_order_id == work_order.id
        ),
        key=lambda t: (t.created_at is None, t.created_at, t.id),
    )
    related = [c for c in collections if c.related_work_order_id == work_order.id]
    recognized = recognized_amount(work_order.id, income)

    findings: list[Finding] = []
    pairs, unpaired, orphans = _pair(income, related)

    for t in unpaired:
        findings.append(Finding(
            FindingKind.MISSING_COLLECTION, work_order.id, t.amount, transaction_id=t.id,
        ))
    for c in orphans:
        findings.append(Finding(
            FindingKind.ORPHAN_COLLECTION, work_order.id, c.amount, collection_id=c.id,
        ))
    for t, c in pairs:
        if t.amount != c.amount:
            findings.append(Finding(
                FindingKind.AMOUNT_MISMATCH,
                work_order.id,
                round_money(c.amount - t.amount),
                transaction_id=t.id,
                collection_id=c.id,
            ))

    gap = round_money(work_order.paid_amount - recognized)
    if gap > 0:
        findings.append(Finding(FindingKind.UNRECOGNIZED_PAYMENT, work_order.id, gap))
    elif gap < 0:
        findings.append(Finding(FindingKind.OVER_RECOGNIZED, work_order.id, -gap))

    return ReconciliationResult(
        work_order_id=work_order.id,
        paid_amount=work_order.paid_amount,
        recognized=recognized,
        findings=tuple(findings),
    )
