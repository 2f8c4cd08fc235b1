"""
cleanops_services.operations -- the engine's exposed operations.

Responsibility:
    Construct every service exactly once, wire them together, and expose
    the operations consumed by the HTTP layer and by intake tooling.  Each
    operation checks the caller's role against the configured table, then
    delegates.

Architecture position:
    Services -- top of the service layer, the only place services are
    composed.

Usage:
    from cleanops_services.operations import OperationsEngine

    engine = OperationsEngine.from_config()
    wo = engine.create_work_order(caller, {"customer_id": "c1", "date": "2024-01-03"})
    engine.transition_work_order(caller, wo.id, "approved")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from cleanops_config import EngineConfig, get_active_config
from cleanops_engines.recurrence import RecurrenceRule
from cleanops_kernel.db.engine import create_tables, init_engine_from_url
from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.domain.entities import PayrollRecord, WorkOrder, WorkOrderStatus
from cleanops_kernel.domain.identity import Caller
from cleanops_kernel.domain.patches import WorkOrderDraft, WorkOrderPatch
from cleanops_kernel.logging_config import configure_logging, get_logger
from cleanops_kernel.store.base import Store
from cleanops_kernel.store.memory import MemoryStore
from cleanops_kernel.store.sql import SqlStore
from cleanops_services.auto_approval import AutoApprovalSweep, SweepResult
from cleanops_services.cash_flow_service import (
    CashFlowService,
    CashFlowSummary,
    CustomerDebt,
)
from cleanops_services.directory import Directory
from cleanops_services.payroll_service import PayrollBalances, PayrollService
from cleanops_services.rbac_authority import require_operation
from cleanops_services.recognition_writer import RecognitionWriter, new_id
from cleanops_services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
)
from cleanops_services.recurring_service import RecurringBatchResult, RecurringOrderService
from cleanops_services.work_order_service import BulkCreateResult, WorkOrderService

logger = get_logger("services.operations")


def build_store(config: EngineConfig) -> Store:
    """Store adapter selected by ``config.store.backend``."""
    if config.store.backend == "memory":
        return MemoryStore()
    init_engine_from_url(config.store.url, timeout_seconds=config.store.timeout_seconds)
    create_tables()
    return SqlStore(page_size=config.store.page_size)


class OperationsEngine:
    """Central factory and entry point for the engine's operations.

    Contract:
        Receives a Store, an EngineConfig and an optional Clock.  Builds
        every service once, in dependency order, and exposes them as
        attributes.  All services share the same Store and Clock.
    """

    def __init__(
        self,
        store: Store,
        config: EngineConfig,
        clock: Clock | None = None,
        id_factory: Callable[[], str] = new_id,
        enforce_roles: bool = True,
    ) -> None:
        self.store = store
        self.config = config
        self.clock = clock or SystemClock()
        self._enforce_roles = enforce_roles
        attempts = config.store.read_retry_attempts

        self.directory = Directory(store, attempts)
        self.recognition = RecognitionWriter(store, self.clock, id_factory, attempts)
        self.work_orders = WorkOrderService(
            store,
            config.categories,
            clock=self.clock,
            directory=self.directory,
            recognition=self.recognition,
            id_factory=id_factory,
            read_retry_attempts=attempts,
        )
        self.sweep = AutoApprovalSweep(self.work_orders, self.clock)
        if config.sweep.enabled:
            self.work_orders.sweep_trigger = self.sweep.trigger_async
        self.recurring = RecurringOrderService(self.work_orders, self.directory)
        self.payroll = PayrollService(
            store,
            config.categories,
            clock=self.clock,
            directory=self.directory,
            id_factory=id_factory,
            read_retry_attempts=attempts,
        )
        self.reconciliation = ReconciliationService(
            self.work_orders, self.recognition, config.categories.reconciliation
        )
        self.cash_flow = CashFlowService(store, attempts)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> "OperationsEngine":
        config = config or get_active_config()
        configure_logging(level=config.log_level.upper())
        engine = cls(build_store(config), config, clock=clock)
        logger.info(
            "operations_engine_ready",
            extra={"store_backend": config.store.backend},
        )
        return engine

    def _authorize(self, caller: Caller, operation: str) -> None:
        if self._enforce_roles:
            require_operation(self.config.roles, caller.role, operation)

    # -----------------------------------------------------------------
    # Work orders
    # -----------------------------------------------------------------

    def create_work_order(
        self, caller: Caller, draft: WorkOrderDraft | Mapping[str, Any]
    ) -> WorkOrder:
        self._authorize(caller, "create_work_order")
        return self.work_orders.create(draft, caller)

    def bulk_create_work_orders(
        self, caller: Caller, drafts: Iterable[WorkOrderDraft | Mapping[str, Any]]
    ) -> BulkCreateResult:
        self._authorize(caller, "bulk_create_work_orders")
        return self.work_orders.bulk_create(drafts, caller)

    def list_work_orders(
        self, caller: Caller, status: WorkOrderStatus | str | None = None
    ) -> list[WorkOrder]:
        self._authorize(caller, "list_work_orders")
        return self.work_orders.list_work_orders(status)

    def transition_work_order(
        self,
        caller: Caller,
        work_order_id: str,
        target: WorkOrderStatus | str,
        extra: Mapping[str, Any] | None = None,
    ) -> WorkOrder:
        self._authorize(caller, "transition_work_order")
        return self.work_orders.transition(work_order_id, target, caller, extra)

    def update_work_order_fields(
        self,
        caller: Caller,
        work_order_id: str,
        patch: WorkOrderPatch | Mapping[str, Any],
    ) -> WorkOrder:
        self._authorize(caller, "update_work_order_fields")
        return self.work_orders.update_fields(work_order_id, patch, caller)

    def record_work_order_payment(
        self, caller: Caller, work_order_id: str, amount: Decimal | str | int
    ) -> WorkOrder:
        self._authorize(caller, "record_work_order_payment")
        return self.work_orders.record_payment(work_order_id, amount, caller)

    def delete_work_order(self, caller: Caller, work_order_id: str) -> None:
        self._authorize(caller, "delete_work_order")
        self.work_orders.delete(work_order_id, caller)

    def create_recurring_work_orders(
        self,
        caller: Caller,
        template: WorkOrderDraft | Mapping[str, Any],
        rule: RecurrenceRule | Mapping[str, Any],
        start: date | str,
        end: date | str,
    ) -> RecurringBatchResult:
        self._authorize(caller, "create_recurring_work_orders")
        return self.recurring.create_recurring(template, rule, start, end, caller)

    def run_auto_approval_sweep(
        self, caller: Caller, today: date | None = None
    ) -> SweepResult:
        self._authorize(caller, "run_auto_approval_sweep")
        return self.sweep.run(today)

    def reconcile_work_order(self, caller: Caller, work_order_id: str) -> ReconciliationResult:
        self._authorize(caller, "reconcile_work_order")
        return self.reconciliation.repair(work_order_id, caller)

    # -----------------------------------------------------------------
    # Payroll
    # -----------------------------------------------------------------

    def upsert_payroll_record(
        self,
        caller: Caller,
        personnel_id: str,
        day: date | str,
        daily_wage: Decimal | str | int,
        daily_payment: Decimal | str | int,
    ) -> PayrollRecord:
        self._authorize(caller, "upsert_payroll_record")
        return self.payroll.upsert(personnel_id, day, daily_wage, daily_payment, caller)

    def get_payroll_balances(self, caller: Caller, day: date | str) -> PayrollBalances:
        self._authorize(caller, "get_payroll_balances")
        return self.payroll.get_balances(day)

    # -----------------------------------------------------------------
    # Cash
    # -----------------------------------------------------------------

    def pending_collections(self, caller: Caller) -> list[CustomerDebt]:
        self._authorize(caller, "pending_collections")
        return self.cash_flow.pending_collections()

    def daily_cash_flow(self, caller: Caller, day: date | str) -> CashFlowSummary:
        self._authorize(caller, "daily_cash_flow")
        return self.cash_flow.daily_cash_flow(day)
