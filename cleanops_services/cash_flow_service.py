"""
CashFlowService -- read models behind the collections and cash screens.

    pending_collections()   customers who still owe on approved or
                            completed work, largest debt first
    daily_cash_flow(day)    money in and out on one day

Read-only; never writes to the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from cleanops_kernel.domain.entities import (
    Collection,
    PayrollRecord,
    Transaction,
    TransactionType,
    WorkOrder,
    WorkOrderStatus,
)
from cleanops_kernel.domain.money import sum_money
from cleanops_kernel.domain.patches import parse_date
from cleanops_kernel.logging_config import get_logger
from cleanops_kernel.store.base import Store, with_read_retry
from cleanops_kernel.store.keys import (
    COLLECTION_PREFIX,
    TRANSACTION_PREFIX,
    WORK_ORDER_PREFIX,
    payroll_day_prefix,
)

logger = get_logger("services.cash_flow")


@dataclass(frozen=True)
class CustomerDebt:
    customer_id: str
    customer_name: str
    total_remaining: Decimal
    work_orders: tuple[WorkOrder, ...]


@dataclass(frozen=True)
class CashFlowSummary:
    date: date
    collections: tuple[Collection, ...]
    expenses: tuple[Transaction, ...]
    collections_total: Decimal
    expenses_total: Decimal
    # Part of expenses_total: payroll payments made that day.
    wages_paid: Decimal

    @property
    def net(self) -> Decimal:
        return self.collections_total - self.expenses_total


class CashFlowService:
    def __init__(self, store: Store, read_retry_attempts: int = 2) -> None:
        self._store = store
        self._attempts = read_retry_attempts

    def _scan(self, prefix: str) -> list[dict]:
        return with_read_retry(lambda: self._store.scan_by_prefix(prefix), self._attempts)

    def pending_collections(self) -> list[CustomerDebt]:
        open_orders: dict[str, list[WorkOrder]] = {}
        for record in self._scan(WORK_ORDER_PREFIX):
            wo = WorkOrder.from_record(record)
            if wo.status == WorkOrderStatus.DRAFT or wo.remaining_amount <= 0:
                continue
            open_orders.setdefault(wo.customer_id, []).append(wo)

        debts = [
            CustomerDebt(
                customer_id=customer_id,
                customer_name=orders[0].customer_name,
                total_remaining=sum_money(wo.remaining_amount for wo in orders),
                work_orders=tuple(sorted(orders, key=lambda wo: (wo.date, wo.id))),
            )
            for customer_id, orders in open_orders.items()
        ]
        return sorted(debts, key=lambda d: (-d.total_remaining, d.customer_name, d.customer_id))

    def daily_cash_flow(self, day: date | str) -> CashFlowSummary:
        day = parse_date("date", day)
        collections = tuple(
            c for c in (Collection.from_record(r) for r in self._scan(COLLECTION_PREFIX))
            if c.date == day
        )
        expenses = tuple(
            t for t in (Transaction.from_record(r) for r in self._scan(TRANSACTION_PREFIX))
            if t.type == TransactionType.EXPENSE and t.date == day
        )
        payroll = [PayrollRecord.from_record(r) for r in self._scan(payroll_day_prefix(day))]

        summary = CashFlowSummary(
            date=day,
            collections=collections,
            expenses=expenses,
            collections_total=sum_money(c.amount for c in collections),
            expenses_total=sum_money(t.amount for t in expenses),
            wages_paid=sum_money(r.daily_payment for r in payroll),
        )
        logger.debug(
            "daily_cash_flow_computed",
            extra={"work_date": day, "net": summary.net},
        )
        return summary
