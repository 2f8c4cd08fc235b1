"""Pure domain layer: entities, input types, money, clock. Zero I/O."""

from cleanops_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from cleanops_kernel.domain.entities import (
    Collection,
    Customer,
    PayrollRecord,
    Personnel,
    Transaction,
    TransactionType,
    WorkOrder,
    WorkOrderStatus,
)
from cleanops_kernel.domain.identity import SYSTEM_CALLER, Caller, IdentityProvider
from cleanops_kernel.domain.patches import TransitionExtra, WorkOrderDraft, WorkOrderPatch

__all__ = [
    "Caller",
    "Clock",
    "Collection",
    "Customer",
    "DeterministicClock",
    "IdentityProvider",
    "PayrollRecord",
    "Personnel",
    "SYSTEM_CALLER",
    "SystemClock",
    "Transaction",
    "TransactionType",
    "TransitionExtra",
    "WorkOrder",
    "WorkOrderDraft",
    "WorkOrderPatch",
    "WorkOrderStatus",
]
