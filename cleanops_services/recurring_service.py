"""
RecurringOrderService -- one work order per date of a recurrence rule.

Contract:
    ``create_recurring`` resolves the customer once, expands the rule with
    the pure recurrence engine, and creates an order per date through
    ``WorkOrderService.create``.  All orders of one call share a
    ``recurrence_tag``.  Best effort: a failed date is recorded and the
    batch moves on; earlier orders are never rolled back.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from cleanops_engines.recurrence import RecurrenceRule, expand, parse_rule
from cleanops_kernel.domain.entities import WorkOrder
from cleanops_kernel.domain.identity import Caller
from cleanops_kernel.domain.patches import WorkOrderDraft, parse_date
from cleanops_kernel.exceptions import CleanOpsError
from cleanops_kernel.logging_config import get_logger
from cleanops_services.directory import Directory
from cleanops_services.recognition_writer import new_id
from cleanops_services.work_order_service import WorkOrderService

logger = get_logger("services.recurring")


@dataclass(frozen=True)
class OccurrenceFailure:
    date: date
    code: str
    message: str


@dataclass(frozen=True)
class RecurringBatchResult:
    recurrence_tag: str
    dates: tuple[date, ...]
    created: tuple[WorkOrder, ...]
    failures: tuple[OccurrenceFailure, ...]


class RecurringOrderService:
    def __init__(self, work_orders: WorkOrderService, directory: Directory) -> None:
        self._work_orders = work_orders
        self._directory = directory

    def create_recurring(
        self,
        template: WorkOrderDraft | Mapping[str, Any],
        rule: RecurrenceRule | Mapping[str, Any],
        start: date | str,
        end: date | str,
        caller: Caller,
    ) -> RecurringBatchResult:
        start = parse_date("start", start)
        end = parse_date("end", end)
        if isinstance(rule, Mapping):
            rule = parse_rule(rule)
        if not isinstance(template, WorkOrderDraft):
            template = WorkOrderDraft.from_mapping({**template, "date": start})

        customer = self._directory.get_customer(template.customer_id)
        dates = expand(rule, start, end)
        tag = new_id()

        created: list[WorkOrder] = []
        failures: list[OccurrenceFailure] = []
        for day in dates:
            try:
                created.append(
                    self._work_orders.create(
                        template.for_date(day, recurrence_tag=tag), caller, customer=customer
                    )
                )
            except CleanOpsError as exc:
                failures.append(OccurrenceFailure(day, exc.code, str(exc)))
                logger.warning(
                    "recurring_occurrence_failed",
                    extra={"work_date": day, "error_code": exc.code, "error": str(exc)},
                )

        logger.info(
            "recurring_batch_created",
            extra={
                "recurrence_tag": tag,
                "customer_id": customer.id,
                "dates": len(dates),
                "created_count": len(created),
                "failed": len(failures),
            },
        )
        return RecurringBatchResult(
            recurrence_tag=tag,
            dates=tuple(dates),
            created=tuple(created),
            failures=tuple(failures),
        )
