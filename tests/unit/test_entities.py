"""Record round-trips and invariants of the domain entities."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from cleanops_kernel.domain.entities import (
    WORK_ORDER_TRANSITIONS,
    Collection,
    Customer,
    PayrollRecord,
    Personnel,
    Transaction,
    TransactionType,
    WorkOrder,
    WorkOrderStatus,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestWorkOrder:
    def _order(self, **changes):
        wo = WorkOrder(
            id="wo-1",
            customer_id="c1",
            customer_name="Acme Offices",
            date=date(2024, 1, 3),
            status=WorkOrderStatus.DRAFT,
            created_at=NOW,
            personnel_ids=frozenset({"p2", "p1"}),
            total_amount=Decimal("300.00"),
            paid_amount=Decimal("100.00"),
        )
        return wo.with_changes(**changes)

    def test_record_round_trip_preserves_fields(self):
        wo = self._order(approved_at=NOW, status=WorkOrderStatus.APPROVED)
        record = wo.to_record()
        assert record["personnel_ids"] == ["p1", "p2"]
        assert record["total_amount"] == "300.00"
        assert record["status"] == "approved"
        assert "version" not in record
        assert WorkOrder.from_record(record, version=4) == wo.with_changes(version=4)

    def test_remaining_amount(self):
        assert self._order().remaining_amount == Decimal("200.00")
        assert self._order(paid_amount=Decimal("300.00")).remaining_amount == Decimal("0.00")

    def test_legacy_timestamp_date(self):
        record = self._order().to_record()
        record["date"] = "2024-01-03T00:00:00Z"
        assert WorkOrder.from_record(record).date == date(2024, 1, 3)

    def test_transitions_only_advance(self):
        assert WORK_ORDER_TRANSITIONS[WorkOrderStatus.DRAFT] == {WorkOrderStatus.APPROVED}
        assert WORK_ORDER_TRANSITIONS[WorkOrderStatus.APPROVED] == {WorkOrderStatus.COMPLETED}
        assert not WORK_ORDER_TRANSITIONS[WorkOrderStatus.COMPLETED]


class TestLedgerLines:
    def test_transaction_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            Transaction(id="t1", type=TransactionType.INCOME, amount=Decimal("0"), date=NOW.date())

    def test_transaction_round_trip(self):
        tx = Transaction(
            id="t1",
            type=TransactionType.EXPENSE,
            amount=Decimal("30.00"),
            date=date(2024, 1, 2),
            category="Personnel Payment",
            related_personnel_id="p1",
            created_at=NOW,
        )
        assert Transaction.from_record(tx.to_record()) == tx

    def test_collection_work_date_defaults_to_date(self):
        record = {"id": "k1", "customer_id": "c1", "amount": "20", "date": "2024-01-02"}
        assert Collection.from_record(record).work_date == date(2024, 1, 2)


class TestPayrollRecord:
    def test_round_trip(self):
        record = PayrollRecord(
            personnel_id="p1",
            date=date(2024, 1, 2),
            carryover=Decimal("100.00"),
            daily_wage=Decimal("50.00"),
            daily_payment=Decimal("30.00"),
            balance=Decimal("120.00"),
            updated_at=NOW,
        )
        assert PayrollRecord.from_record(record.to_record(), version=2).balance == Decimal("120.00")


class TestReferenceEntities:
    def test_phone_from_contact_info(self):
        assert Customer.from_record(
            {"id": "c1", "name": "Acme", "contact_info": {"phone": "555"}}
        ).phone == "555"
        assert Personnel.from_record(
            {"id": "p1", "name": "Ayse", "contact_info": {"phone": "556"}}
        ).phone == "556"

    def test_personnel_active_by_default(self):
        assert Personnel.from_record({"id": "p1", "name": "Ayse"}).active
