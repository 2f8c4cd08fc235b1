"""
ReconciliationService -- detect and repair recognition drift.

Composes the RecognitionWriter (store reads and writes) and the pure
``cleanops_engines.reconciliation`` engine.

Contract:
    - ``check()`` is read-only.
    - ``repair()`` backfills Collections missing for an income line and
      recognizes any ``paid_amount`` not yet recognized.  Orphan
      collections, amount mismatches and over-recognition are reported and
      left for a person to resolve.
    - ``reconcile_all()`` repairs every work order; one failing order is
      logged and does not stop the pass.
"""

from __future__ import annotations

from dataclasses import replace

from cleanops_engines.reconciliation import FindingKind, ReconciliationResult, reconcile
from cleanops_kernel.domain.identity import SYSTEM_CALLER, Caller
from cleanops_kernel.exceptions import CleanOpsError
from cleanops_kernel.logging_config import LogContext, get_logger
from cleanops_services.recognition_writer import RecognitionWriter
from cleanops_services.work_order_service import WorkOrderService

logger = get_logger("services.reconciliation")


class ReconciliationService:
    def __init__(
        self,
        work_orders: WorkOrderService,
        recognition: RecognitionWriter,
        category: str,
    ) -> None:
        self._work_orders = work_orders
        self._recognition = recognition
        self._category = category

    def check(self, work_order_id: str) -> ReconciliationResult:
        work_order = self._work_orders.get(work_order_id)
        return reconcile(
            work_order,
            self._recognition.transactions(work_order_id),
            self._recognition.collections(work_order_id),
        )

    def repair(
        self,
        work_order_id: str,
        caller: Caller = SYSTEM_CALLER,
    ) -> ReconciliationResult:
        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            work_order = self._work_orders.get(work_order_id)
            transactions = {t.id: t for t in self._recognition.transactions(work_order_id)}
            result = reconcile(
                work_order,
                list(transactions.values()),
                self._recognition.collections(work_order_id),
            )
            repaired = []
            for finding in result.findings:
                if finding.kind == FindingKind.MISSING_COLLECTION:
                    self._recognition.backfill_collection(
                        work_order, transactions[finding.transaction_id], caller
                    )
                    repaired.append(finding)
                elif finding.kind == FindingKind.UNRECOGNIZED_PAYMENT:
                    self._recognition.recognize(work_order, self._category, caller)
                    repaired.append(finding)

            result = replace(result, repaired=tuple(repaired))
            if result.findings:
                logger.warning(
                    "reconciliation_findings",
                    extra={
                        "findings": [f.kind.value for f in result.findings],
                        "repaired": len(repaired),
                        "unresolved": [f.kind.value for f in result.unresolved],
                    },
                )
        return result

    def reconcile_all(self, caller: Caller = SYSTEM_CALLER) -> list[ReconciliationResult]:
        """Repair every work order; returns the results that had findings."""
        results: list[ReconciliationResult] = []
        checked = 0
        for work_order in self._work_orders.all_work_orders():
            checked += 1
            try:
                result = self.repair(work_order.id, caller)
            except CleanOpsError:
                logger.exception(
                    "reconciliation_failed", extra={"work_order_id": work_order.id}
                )
                continue
            if result.findings:
                results.append(result)
        logger.info(
            "reconciliation_completed",
            extra={"checked": checked, "with_findings": len(results)},
        )
        return results
