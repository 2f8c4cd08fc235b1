"""
WorkOrderService -- the work order lifecycle manager.

Responsibility:
    Create, transition, patch, collect payment on, list and purge work
    orders, keeping ``recognized(wo) == wo.paid_amount`` through the
    RecognitionWriter on every path that changes ``paid_amount`` or status.

Architecture: cleanops_services -- imperative shell.
    Reads and writes through the Store, stamps time from the injected
    Clock, delegates money decisions to ``cleanops_engines.recognition``.

Invariants enforced:
    - Status only advances: draft -> approved -> completed
      (``WORK_ORDER_TRANSITIONS``).  Only approved / completed orders may
      be deleted.
    - Every work order write is a compare-and-set on the record version.
    - The work order is persisted before its recognition pair is written.
    - ``0 <= recognized(wo) <= paid_amount <= total_amount``.

Failure modes:
    - NotFoundError, InvalidInputError, InvalidTransitionError -- terminal.
    - OptimisticLockError -- the record changed since it was read.
    - RecognitionIncompleteError -- the work order was saved but its
      recognition pair is partial; see RecognitionWriter.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from cleanops_config.schema import CategoryConfig
from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.domain.entities import (
    DELETABLE_STATUSES,
    WORK_ORDER_TRANSITIONS,
    Customer,
    WorkOrder,
    WorkOrderStatus,
)
from cleanops_kernel.domain.identity import SYSTEM_CALLER, Caller
from cleanops_kernel.domain.patches import (
    OVERPAYMENT_REASON,
    TransitionExtra,
    WorkOrderDraft,
    WorkOrderPatch,
    parse_amount,
)
from cleanops_kernel.exceptions import (
    CleanOpsError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    OptimisticLockError,
)
from cleanops_kernel.logging_config import LogContext, get_logger
from cleanops_kernel.store.base import Store, with_read_retry
from cleanops_kernel.store.keys import WORK_ORDER_PREFIX, work_order_key
from cleanops_services.directory import Directory
from cleanops_services.recognition_writer import RecognitionWriter, new_id

logger = get_logger("services.work_orders")


@dataclass(frozen=True)
class BulkFailure:
    index: int
    code: str
    message: str


@dataclass(frozen=True)
class BulkCreateResult:
    created: tuple[WorkOrder, ...]
    failures: tuple[BulkFailure, ...]

    @property
    def all_succeeded(self) -> bool:
        return not self.failures


def _blocked_reason(current: WorkOrderStatus, target: WorkOrderStatus) -> str:
    if current == target:
        return f"work order is already {current.value}"
    if target == WorkOrderStatus.COMPLETED:
        return "work order must be approved before it is completed"
    return f"{current.value} work orders cannot move to {target.value}"


class WorkOrderService:
    """Lifecycle operations over work orders.

    Contract:
        - Every mutating method returns the work order as persisted,
          carrying its new store version.
        - ``list_work_orders`` may start an auto-approval sweep in the
          background through ``sweep_trigger`` and never waits for it.
    """

    def __init__(
        self,
        store: Store,
        categories: CategoryConfig,
        clock: Clock | None = None,
        directory: Directory | None = None,
        recognition: RecognitionWriter | None = None,
        id_factory: Callable[[], str] = new_id,
        read_retry_attempts: int = 2,
    ) -> None:
        self._store = store
        self._categories = categories
        self._clock = clock or SystemClock()
        self._directory = directory or Directory(store, read_retry_attempts)
        self._recognition = recognition or RecognitionWriter(
            store, self._clock, id_factory, read_retry_attempts
        )
        self._new_id = id_factory
        self._attempts = read_retry_attempts
        self.sweep_trigger: Callable[[], Any] | None = None

    @property
    def recognition(self) -> RecognitionWriter:
        return self._recognition

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get(self, work_order_id: str) -> WorkOrder:
        entry = with_read_retry(
            lambda: self._store.get_entry(work_order_key(work_order_id)), self._attempts
        )
        if entry is None:
            raise NotFoundError("WorkOrder", work_order_id)
        return WorkOrder.from_record(entry.value, version=entry.version)

    def all_work_orders(self) -> list[WorkOrder]:
        entries = with_read_retry(
            lambda: self._store.scan_items(WORK_ORDER_PREFIX), self._attempts
        )
        return [WorkOrder.from_record(e.value, version=e.version) for e in entries]

    def list_work_orders(
        self,
        status: WorkOrderStatus | str | None = None,
        trigger_sweep: bool = True,
    ) -> list[WorkOrder]:
        """Work orders by date, newest first; optionally kick off a sweep."""
        if trigger_sweep and self.sweep_trigger is not None:
            self.sweep_trigger()
        orders = self.all_work_orders()
        if status is not None:
            wanted = WorkOrderStatus(status)
            orders = [wo for wo in orders if wo.status == wanted]
        return sorted(orders, key=lambda wo: (wo.date, wo.created_at), reverse=True)

    def recognized(self, work_order_id: str) -> Decimal:
        return self._recognition.recognized(work_order_id)

    # -----------------------------------------------------------------
    # Creation
    # -----------------------------------------------------------------

    def create(
        self,
        draft: WorkOrderDraft | Mapping[str, Any],
        caller: Caller,
        customer: Customer | None = None,
    ) -> WorkOrder:
        if not isinstance(draft, WorkOrderDraft):
            draft = WorkOrderDraft.from_mapping(draft)
        if customer is None:
            customer = self._directory.get_customer(draft.customer_id)

        now = self._clock.now()
        status = WorkOrderStatus.APPROVED if draft.auto_approve else WorkOrderStatus.DRAFT
        work_order = WorkOrder(
            id=self._new_id(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_address=customer.address,
            personnel_ids=draft.personnel_ids,
            date=draft.date,
            description=draft.description,
            total_amount=draft.total_amount,
            paid_amount=draft.paid_amount,
            status=status,
            approved_at=now if draft.auto_approve else None,
            created_at=now,
            created_by=caller.id,
            created_by_name=caller.name,
            recurrence_tag=draft.recurrence_tag,
            updated_at=now,
        )

        with LogContext.bind(work_order_id=work_order.id, actor_id=caller.id):
            version = self._store.set(
                work_order_key(work_order.id), work_order.to_record(), expected_version=0
            )
            work_order = work_order.with_changes(version=version)
            logger.info(
                "work_order_created",
                extra={
                    "status": status.value,
                    "work_date": work_order.date,
                    "total_amount": work_order.total_amount,
                    "paid_amount": work_order.paid_amount,
                    "recurrence_tag": work_order.recurrence_tag,
                },
            )
            self._recognition.recognize(work_order, self._categories.creation, caller)
        return work_order

    def bulk_create(
        self,
        drafts: Iterable[WorkOrderDraft | Mapping[str, Any]],
        caller: Caller,
    ) -> BulkCreateResult:
        """Create each candidate independently; failures do not undo earlier rows."""
        created: list[WorkOrder] = []
        failures: list[BulkFailure] = []
        for index, draft in enumerate(drafts):
            try:
                created.append(self.create(draft, caller))
            except CleanOpsError as exc:
                failures.append(BulkFailure(index, exc.code, str(exc)))
                logger.warning(
                    "bulk_create_row_failed",
                    extra={"row": index, "error_code": exc.code, "error": str(exc)},
                )
        logger.info(
            "bulk_create_completed",
            extra={"created_count": len(created), "failed": len(failures)},
        )
        return BulkCreateResult(tuple(created), tuple(failures))

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    def transition(
        self,
        work_order_id: str,
        target: WorkOrderStatus | str,
        caller: Caller,
        extra: Mapping[str, Any] | None = None,
    ) -> WorkOrder:
        try:
            target = WorkOrderStatus(target)
        except ValueError as exc:
            raise InvalidInputError("status", f"unknown status {target!r}") from exc
        fields = TransitionExtra.from_mapping(target, extra)

        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            current = self.get(work_order_id)
            if target not in WORK_ORDER_TRANSITIONS[current.status]:
                raise InvalidTransitionError(
                    work_order_id,
                    current.status.value,
                    target.value,
                    _blocked_reason(current.status, target),
                )

            now = self._clock.now()
            changes: dict[str, Any] = {"status": target, "updated_at": now}
            if target == WorkOrderStatus.APPROVED:
                changes["approved_at"] = now
                category = self._categories.approval
            else:
                changes["completed_at"] = now
                category = self._categories.completion
                if fields.paid_amount is not None:
                    self._check_paid(current, current.total_amount, fields.paid_amount)
                    changes["paid_amount"] = fields.paid_amount

            updated = self._save(current, **changes)
            logger.info(
                "work_order_transitioned",
                extra={"from_status": current.status.value, "to_status": target.value},
            )
            self._recognition.recognize(updated, category, caller)
        return updated

    def approve_if_draft(
        self,
        work_order_id: str,
        caller: Caller = SYSTEM_CALLER,
    ) -> WorkOrder | None:
        """
        Approve a draft on behalf of the sweep.

        Returns None (a skip, not an error) if the order is gone, is no
        longer a draft, or another writer got to it first.
        """
        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            try:
                current = self.get(work_order_id)
            except NotFoundError:
                return None
            if current.status != WorkOrderStatus.DRAFT:
                return None
            now = self._clock.now()
            try:
                updated = self._save(
                    current,
                    status=WorkOrderStatus.APPROVED,
                    approved_at=now,
                    auto_approved=True,
                    updated_at=now,
                )
            except OptimisticLockError:
                logger.info("auto_approval_race_lost")
                return None
            logger.info(
                "work_order_transitioned",
                extra={"from_status": "draft", "to_status": "approved", "auto": True},
            )
            self._recognition.recognize(updated, self._categories.approval, caller)
        return updated

    # -----------------------------------------------------------------
    # Field updates and payments
    # -----------------------------------------------------------------

    def update_fields(
        self,
        work_order_id: str,
        patch: WorkOrderPatch | Mapping[str, Any],
        caller: Caller,
    ) -> WorkOrder:
        if not isinstance(patch, WorkOrderPatch):
            patch = WorkOrderPatch.from_mapping(patch)
        changes = patch.changes()
        if not changes:
            raise InvalidInputError("patch", "no fields to update")

        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            current = self.get(work_order_id)
            total = changes.get("total_amount", current.total_amount)
            paid = changes.get("paid_amount", current.paid_amount)
            self._check_paid(current, total, paid)

            updated = self._save(current, updated_at=self._clock.now(), **changes)
            logger.info("work_order_updated", extra={"fields": sorted(changes)})
            self._recognition.recognize(updated, self._categories.update, caller)
        return updated

    def record_payment(
        self,
        work_order_id: str,
        amount: Decimal | str | int,
        caller: Caller,
    ) -> WorkOrder:
        """Collect ``amount`` against the remaining balance."""
        amount = parse_amount("amount", amount)
        if amount <= 0:
            raise InvalidInputError("amount", "must be positive")

        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            current = self.get(work_order_id)
            if amount > current.remaining_amount:
                raise InvalidInputError("amount", OVERPAYMENT_REASON)
            updated = self._save(
                current,
                paid_amount=current.paid_amount + amount,
                updated_at=self._clock.now(),
            )
            logger.info(
                "work_order_payment_recorded",
                extra={"amount": amount, "remaining": updated.remaining_amount},
            )
            self._recognition.recognize(updated, self._categories.payment, caller)
        return updated

    # -----------------------------------------------------------------
    # Deletion
    # -----------------------------------------------------------------

    def delete(self, work_order_id: str, caller: Caller) -> None:
        """Purge an approved or completed work order and its recognition records."""
        with LogContext.bind(work_order_id=work_order_id, actor_id=caller.id):
            current = self.get(work_order_id)
            if current.status not in DELETABLE_STATUSES:
                raise InvalidTransitionError(
                    work_order_id,
                    current.status.value,
                    "deleted",
                    f"{current.status.value} work orders cannot be deleted",
                )
            transactions, collections = self._recognition.purge(work_order_id)
            self._store.delete(work_order_key(work_order_id))
            logger.info(
                "work_order_deleted",
                extra={
                    "transactions_deleted": transactions,
                    "collections_deleted": collections,
                },
            )

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    def _check_paid(self, current: WorkOrder, total: Decimal, paid: Decimal) -> None:
        if paid > total:
            raise InvalidInputError("paid_amount", OVERPAYMENT_REASON)
        if paid < current.paid_amount:
            recognized = self._recognition.recognized(current.id)
            if paid < recognized:
                raise InvalidInputError(
                    "paid_amount",
                    f"cannot be lowered below the recognized amount {recognized}",
                )

    def _save(self, current: WorkOrder, **changes: Any) -> WorkOrder:
        updated = current.with_changes(**changes)
        version = self._store.set(
            work_order_key(current.id),
            updated.to_record(),
            expected_version=current.version,
        )
        return updated.with_changes(version=version)
