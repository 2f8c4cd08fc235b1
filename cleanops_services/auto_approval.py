"""
AutoApprovalSweep -- approve every draft whose work date has arrived.

Contract:
    ``run(today)`` scans drafts with ``date <= today`` and approves each
    through ``WorkOrderService.approve_if_draft``, which re-reads the record
    and writes with compare-and-set.  A draft that another sweep (or a user)
    moved on first is a skip, not an error, so concurrent or back-to-back
    sweeps approve and recognize each draft exactly once.

Architecture: cleanops_services.  Explicit operation; the list path only
    *triggers* it on a background thread via ``trigger_async()``.

Failure modes:
    Per-order failures are logged and counted; they never abort the pass.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from uuid import uuid4

from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.domain.entities import WorkOrderStatus
from cleanops_kernel.domain.identity import SYSTEM_CALLER, Caller
from cleanops_kernel.exceptions import CleanOpsError
from cleanops_kernel.logging_config import LogContext, get_logger
from cleanops_services.work_order_service import WorkOrderService

logger = get_logger("services.auto_approval")


@dataclass(frozen=True)
class SweepFailure:
    work_order_id: str
    code: str
    message: str


@dataclass(frozen=True)
class SweepResult:
    sweep_id: str
    today: date
    due: int
    approved: tuple[str, ...]
    skipped: tuple[str, ...]
    failures: tuple[SweepFailure, ...]


class AutoApprovalSweep:
    def __init__(
        self,
        work_orders: WorkOrderService,
        clock: Clock | None = None,
        caller: Caller = SYSTEM_CALLER,
    ) -> None:
        self._work_orders = work_orders
        self._clock = clock or SystemClock()
        self._caller = caller
        self._async_guard = threading.Lock()

    def run(self, today: date | None = None) -> SweepResult:
        today = today or self._clock.today()
        sweep_id = uuid4().hex
        approved: list[str] = []
        skipped: list[str] = []
        failures: list[SweepFailure] = []

        with LogContext.bind(sweep_id=sweep_id, actor_id=self._caller.id):
            due = [
                wo for wo in self._work_orders.all_work_orders()
                if wo.status == WorkOrderStatus.DRAFT and wo.date <= today
            ]
            for wo in sorted(due, key=lambda w: (w.date, w.id)):
                try:
                    result = self._work_orders.approve_if_draft(wo.id, self._caller)
                except CleanOpsError as exc:
                    failures.append(SweepFailure(wo.id, exc.code, str(exc)))
                    logger.exception(
                        "sweep_item_failed",
                        extra={"work_order_id": wo.id},
                    )
                    continue
                (approved if result is not None else skipped).append(wo.id)

            logger.info(
                "sweep_completed",
                extra={
                    "today": today,
                    "due": len(due),
                    "approved": len(approved),
                    "skipped": len(skipped),
                    "failed": len(failures),
                },
            )
        return SweepResult(
            sweep_id=sweep_id,
            today=today,
            due=len(due),
            approved=tuple(approved),
            skipped=tuple(skipped),
            failures=tuple(failures),
        )

    def trigger_async(self) -> threading.Thread | None:
        """
        Start a sweep on a daemon thread and return immediately.

        Returns None when a triggered sweep is already running in this
        process.
        """
        if not self._async_guard.acquire(blocking=False):
            return None

        def _target() -> None:
            try:
                self.run()
            except Exception:
                logger.exception("sweep_async_failed")
            finally:
                self._async_guard.release()

        thread = threading.Thread(target=_target, name="auto-approval-sweep", daemon=True)
        thread.start()
        return thread
