"""
cleanops_services -- imperative shell over the kernel and engines.

Services own store I/O and clock reads; money and date decisions are
delegated to ``cleanops_engines``.  ``OperationsEngine`` composes them and
is the entry point for the outer layers.
"""

from cleanops_services.auto_approval import AutoApprovalSweep, SweepResult
from cleanops_services.cash_flow_service import CashFlowService, CashFlowSummary, CustomerDebt
from cleanops_services.directory import Directory
from cleanops_services.operations import OperationsEngine
from cleanops_services.payroll_service import PayrollBalances, PayrollService
from cleanops_services.recognition_writer import RecognitionWriter
from cleanops_services.reconciliation_service import ReconciliationService
from cleanops_services.recurring_service import RecurringBatchResult, RecurringOrderService
from cleanops_services.work_order_service import BulkCreateResult, WorkOrderService

__all__ = [
    "AutoApprovalSweep",
    "BulkCreateResult",
    "CashFlowService",
    "CashFlowSummary",
    "CustomerDebt",
    "Directory",
    "OperationsEngine",
    "PayrollBalances",
    "PayrollService",
    "RecognitionWriter",
    "ReconciliationService",
    "RecurringBatchResult",
    "RecurringOrderService",
    "SweepResult",
    "WorkOrderService",
]
