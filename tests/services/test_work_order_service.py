"""
Tests for the work order lifecycle manager.

Covers:
- Creation (draft / auto-approved, denormalized customer, validation)
- Recognition on every path that changes paid_amount, gated on the delta
- Status transitions and their guards
- Field patches, payments, deletion cascade
- Bulk creation with partial failure
- Listing and the list-triggered sweep hook
"""

from datetime import date
from decimal import Decimal

import pytest

from cleanops_kernel.domain.entities import TransactionType, WorkOrderStatus
from cleanops_kernel.domain.patches import OVERPAYMENT_REASON
from cleanops_kernel.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from cleanops_kernel.store.keys import (
    work_order_collections_prefix,
    work_order_transactions_prefix,
)


def _recognized(engine, wo_id):
    return engine.work_orders.recognized(wo_id)


def _income_count(engine, wo_id):
    return len(engine.recognition.transactions(wo_id))


class TestCreate:
    def test_creates_draft_with_customer_details(self, engine, make_order, admin, clock):
        wo = make_order(personnel_ids=["p1"])
        assert wo.status == WorkOrderStatus.DRAFT
        assert wo.customer_name == "Acme Offices"
        assert wo.customer_address == "12 Harbour St"
        assert wo.personnel_ids == frozenset({"p1"})
        assert wo.created_by == admin.id
        assert wo.created_at == clock.now()
        assert wo.approved_at is None
        assert wo.version == 1
        assert engine.work_orders.get(wo.id) == wo

    def test_auto_approve(self, make_order, clock):
        wo = make_order(auto_approve=True)
        assert wo.status == WorkOrderStatus.APPROVED
        assert wo.approved_at == clock.now()

    def test_unpaid_order_recognizes_nothing(self, engine, make_order):
        wo = make_order()
        assert _recognized(engine, wo.id) == Decimal("0.00")
        assert engine.store.scan_items(work_order_collections_prefix(wo.id)) == []

    def test_prepaid_draft_recognized_at_creation(self, engine, make_order):
        wo = make_order(paid_amount="200")
        assert _recognized(engine, wo.id) == Decimal("200.00")
        (tx,) = engine.recognition.transactions(wo.id)
        assert tx.type == TransactionType.INCOME
        assert tx.category == "Work Order Payment"
        assert tx.date == date(2024, 1, 1)
        (col,) = engine.recognition.collections(wo.id)
        assert col.related_transaction_id == tx.id
        assert col.customer_name == "Acme Offices"

    def test_unknown_customer(self, make_order):
        with pytest.raises(NotFoundError) as exc_info:
            make_order(customer_id="c404")
        assert exc_info.value.entity_type == "Customer"

    def test_missing_date(self, engine, admin):
        with pytest.raises(InvalidInputError) as exc_info:
            engine.create_work_order(admin, {"customer_id": "c1"})
        assert exc_info.value.field == "date"

    def test_paid_above_total(self, make_order):
        with pytest.raises(InvalidInputError, match=OVERPAYMENT_REASON):
            make_order(total_amount="100", paid_amount="150")

    def test_creation_logged(self, make_order, captured_logs):
        wo = make_order(paid_amount="50")
        messages = {r["message"]: r for r in captured_logs()}
        assert messages["work_order_created"]["work_order_id"] == wo.id
        assert messages["payment_recognized"]["delta"] == "50.00"


class TestApproval:
    def test_prepaid_draft_approved_recognizes_once(self, engine, make_order, admin):
        wo = make_order(paid_amount="200")
        approved = engine.transition_work_order(admin, wo.id, "approved")

        assert approved.status == WorkOrderStatus.APPROVED
        assert _recognized(engine, wo.id) == Decimal("200.00")
        assert _income_count(engine, wo.id) == 1
        assert len(engine.recognition.collections(wo.id)) == 1

    def test_approved_at_stamped(self, engine, make_order, admin, clock):
        wo = make_order()
        clock.advance(60)
        approved = engine.transition_work_order(admin, wo.id, WorkOrderStatus.APPROVED)
        assert approved.approved_at == clock.now()
        assert approved.auto_approved is False
        assert approved.version == wo.version + 1

    def test_already_approved(self, engine, make_order, admin):
        wo = make_order(auto_approve=True)
        with pytest.raises(InvalidTransitionError, match="already approved"):
            engine.transition_work_order(admin, wo.id, "approved")

    def test_approve_rejects_extra_fields(self, engine, make_order, admin):
        wo = make_order()
        with pytest.raises(InvalidInputError):
            engine.transition_work_order(admin, wo.id, "approved", {"paid_amount": "10"})

    def test_unknown_target(self, engine, make_order, admin):
        wo = make_order()
        with pytest.raises(InvalidInputError) as exc_info:
            engine.transition_work_order(admin, wo.id, "cancelled")
        assert exc_info.value.field == "status"

    def test_unknown_work_order(self, engine, admin):
        with pytest.raises(NotFoundError):
            engine.transition_work_order(admin, "wo-404", "approved")


class TestCompletion:
    def test_draft_cannot_be_completed(self, engine, make_order, admin):
        wo = make_order()
        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.transition_work_order(admin, wo.id, "completed")
        assert exc_info.value.current == "draft"
        assert "must be approved" in str(exc_info.value)

    def test_completion_recognizes_only_delta(self, engine, make_order, admin, clock):
        wo = make_order(paid_amount="100", auto_approve=True)
        done = engine.transition_work_order(admin, wo.id, "completed", {"paid_amount": "300"})

        assert done.status == WorkOrderStatus.COMPLETED
        assert done.completed_at == clock.now()
        assert done.paid_amount == Decimal("300.00")
        amounts = sorted(t.amount for t in engine.recognition.transactions(wo.id))
        assert amounts == [Decimal("100.00"), Decimal("200.00")]
        assert _recognized(engine, wo.id) == done.paid_amount

    def test_completion_without_new_payment(self, engine, make_order, admin):
        wo = make_order(paid_amount="100", auto_approve=True)
        engine.transition_work_order(admin, wo.id, "completed")
        assert _income_count(engine, wo.id) == 1

    def test_completion_payment_over_total(self, engine, make_order, admin):
        wo = make_order(auto_approve=True)
        with pytest.raises(InvalidInputError, match=OVERPAYMENT_REASON):
            engine.transition_work_order(admin, wo.id, "completed", {"paid_amount": "301"})
        assert engine.work_orders.get(wo.id).status == WorkOrderStatus.APPROVED

    def test_completed_is_terminal(self, engine, make_order, admin):
        wo = make_order(auto_approve=True)
        engine.transition_work_order(admin, wo.id, "completed")
        with pytest.raises(InvalidTransitionError):
            engine.transition_work_order(admin, wo.id, "approved")


class TestUpdateFields:
    def test_paid_increase_recognizes_delta(self, engine, make_order, admin):
        wo = make_order(paid_amount="50")
        updated = engine.update_work_order_fields(admin, wo.id, {"paid_amount": "120"})
        assert updated.paid_amount == Decimal("120.00")
        assert _recognized(engine, wo.id) == Decimal("120.00")
        assert _income_count(engine, wo.id) == 2

    def test_unrelated_fields_recognize_nothing(self, engine, make_order, admin):
        wo = make_order(paid_amount="50")
        updated = engine.update_work_order_fields(
            admin, wo.id, {"description": "Windows too", "personnel_ids": ["p1", "p2"]}
        )
        assert updated.description == "Windows too"
        assert updated.personnel_ids == frozenset({"p1", "p2"})
        assert _income_count(engine, wo.id) == 1

    @pytest.mark.parametrize("field", ["status", "approved_at", "created_by", "id"])
    def test_forbidden_field(self, engine, make_order, admin, field):
        wo = make_order()
        with pytest.raises(InvalidInputError, match="field is not updatable"):
            engine.update_work_order_fields(admin, wo.id, {field: "x"})
        assert engine.work_orders.get(wo.id).version == wo.version

    def test_empty_patch(self, engine, make_order, admin):
        wo = make_order()
        with pytest.raises(InvalidInputError):
            engine.update_work_order_fields(admin, wo.id, {})

    def test_cannot_drop_paid_below_recognized(self, engine, make_order, admin):
        wo = make_order(paid_amount="200")
        with pytest.raises(InvalidInputError, match="recognized"):
            engine.update_work_order_fields(admin, wo.id, {"paid_amount": "100"})

    def test_total_below_paid(self, engine, make_order, admin):
        wo = make_order(paid_amount="200")
        with pytest.raises(InvalidInputError, match=OVERPAYMENT_REASON):
            engine.update_work_order_fields(admin, wo.id, {"total_amount": "150"})

    def test_date_change_keeps_recognized_lines(self, engine, make_order, admin):
        wo = make_order(paid_amount="100")
        engine.update_work_order_fields(admin, wo.id, {"date": "2024-01-09"})
        (tx,) = engine.recognition.transactions(wo.id)
        assert tx.date == date(2024, 1, 1)
        assert engine.work_orders.get(wo.id).date == date(2024, 1, 9)


class TestRecordPayment:
    def test_payment_recognized_as_collection(self, engine, make_order, admin):
        wo = make_order(paid_amount="100", auto_approve=True)
        updated = engine.record_work_order_payment(admin, wo.id, "150")
        assert updated.paid_amount == Decimal("250.00")
        assert updated.remaining_amount == Decimal("50.00")
        latest = max(engine.recognition.transactions(wo.id), key=lambda t: t.amount)
        assert latest.amount == Decimal("150.00")
        assert latest.category == "Collection"
        assert _recognized(engine, wo.id) == Decimal("250.00")

    def test_overpayment_rejected(self, engine, make_order, admin):
        wo = make_order(paid_amount="250", auto_approve=True)
        with pytest.raises(InvalidInputError) as exc_info:
            engine.record_work_order_payment(admin, wo.id, "60")
        assert exc_info.value.reason == OVERPAYMENT_REASON
        assert engine.work_orders.get(wo.id).paid_amount == Decimal("250.00")

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, engine, make_order, admin, amount):
        wo = make_order(auto_approve=True)
        with pytest.raises(InvalidInputError):
            engine.record_work_order_payment(admin, wo.id, amount)


class TestDelete:
    def test_delete_cascades(self, engine, make_order, admin):
        wo = make_order(paid_amount="100", auto_approve=True)
        engine.record_work_order_payment(admin, wo.id, "50")
        keep = make_order(customer_id="c2", paid_amount="30")

        engine.delete_work_order(admin, wo.id)

        with pytest.raises(NotFoundError):
            engine.work_orders.get(wo.id)
        assert engine.store.scan_items(work_order_transactions_prefix(wo.id)) == []
        assert engine.store.scan_items(work_order_collections_prefix(wo.id)) == []
        assert _recognized(engine, keep.id) == Decimal("30.00")

    def test_draft_cannot_be_deleted(self, engine, make_order, admin):
        wo = make_order()
        with pytest.raises(InvalidTransitionError, match="draft work orders cannot be deleted"):
            engine.delete_work_order(admin, wo.id)

    def test_delete_missing(self, engine, admin):
        with pytest.raises(NotFoundError):
            engine.delete_work_order(admin, "wo-404")


class TestBulkCreate:
    def test_partial_failure_keeps_good_rows(self, engine, admin):
        result = engine.bulk_create_work_orders(admin, [
            {"customer_id": "c1", "date": "2024-01-02", "total_amount": "100"},
            {"customer_id": "c404", "date": "2024-01-02"},
            {"customer_id": "c2", "date": "not-a-date"},
            {"customer_id": "c2", "date": "2024-01-03", "paid_amount": "0"},
        ])
        assert len(result.created) == 2
        assert [(f.index, f.code) for f in result.failures] == [
            (1, "NOT_FOUND"),
            (2, "INVALID_INPUT"),
        ]
        assert not result.all_succeeded
        assert len(engine.work_orders.all_work_orders()) == 2

    def test_csv_style_flags(self, engine, admin):
        rows = [
            {"customer_id": "c1", "date": "2024-02-01", "total_amount": "100", "auto_approve": flag}
            for flag in ("false", "TRUE", "0", "yes", "", "maybe")
        ]
        result = engine.bulk_create_work_orders(admin, rows)

        assert [wo.status for wo in result.created] == [
            WorkOrderStatus.DRAFT,
            WorkOrderStatus.APPROVED,
            WorkOrderStatus.DRAFT,
            WorkOrderStatus.APPROVED,
            WorkOrderStatus.DRAFT,
        ]
        assert [(f.index, f.code) for f in result.failures] == [(5, "INVALID_INPUT")]


class TestListing:
    def test_newest_first_and_status_filter(self, engine, make_order, admin):
        older = make_order(date="2024-01-02")
        newer = make_order(date="2024-01-05", auto_approve=True)

        listed = engine.list_work_orders(admin)
        assert [wo.id for wo in listed] == [newer.id, older.id]
        assert [wo.id for wo in engine.list_work_orders(admin, "draft")] == [older.id]

    def test_listing_triggers_sweep_without_waiting(self, engine, admin):
        triggered = []
        engine.work_orders.sweep_trigger = lambda: triggered.append(True)
        engine.list_work_orders(admin)
        assert triggered == [True]


class TestRecognizedEqualsPaid:
    def test_after_mixed_sequence(self, engine, make_order, admin):
        wo = make_order(total_amount="500", paid_amount="100")
        engine.update_work_order_fields(admin, wo.id, {"paid_amount": "150"})
        engine.transition_work_order(admin, wo.id, "approved")
        engine.record_work_order_payment(admin, wo.id, "100")
        engine.update_work_order_fields(admin, wo.id, {"description": "again"})
        done = engine.transition_work_order(admin, wo.id, "completed", {"paid_amount": "400"})

        assert _recognized(engine, wo.id) == done.paid_amount == Decimal("400.00")
        collections = engine.recognition.collections(wo.id)
        assert sum(c.amount for c in collections) == Decimal("400.00")
