"""Tests for the pending collections and daily cash flow read models."""

from datetime import date
from decimal import Decimal


class TestPendingCollections:
    def test_open_balances_grouped_by_customer(self, engine, make_order, admin):
        a = make_order(total_amount="300", paid_amount="100", auto_approve=True)
        make_order(total_amount="80", date="2024-01-04")  # draft: not billed yet
        paid_up = make_order(customer_id="c2", total_amount="50", paid_amount="50",
                             auto_approve=True)
        engine.transition_work_order(admin, paid_up.id, "completed")
        big = make_order(customer_id="c2", total_amount="500", auto_approve=True)
        b = make_order(total_amount="40", date="2024-01-02", auto_approve=True)

        debts = engine.pending_collections(admin)

        assert [d.customer_id for d in debts] == ["c2", "c1"]
        assert debts[0].total_remaining == Decimal("500.00")
        assert [wo.id for wo in debts[0].work_orders] == [big.id]
        assert debts[1].customer_name == "Acme Offices"
        assert debts[1].total_remaining == Decimal("240.00")
        assert [wo.id for wo in debts[1].work_orders] == [a.id, b.id]

    def test_nothing_owed(self, engine, admin):
        assert engine.pending_collections(admin) == []


class TestDailyCashFlow:
    def test_collections_and_expenses_of_the_day(self, engine, make_order, admin):
        make_order(paid_amount="100")
        make_order(customer_id="c2", paid_amount="60", auto_approve=True)
        make_order(date="2024-01-02", paid_amount="999", total_amount="999")
        engine.upsert_payroll_record(admin, "p1", date(2024, 1, 1), "50", "30")
        engine.upsert_payroll_record(admin, "p2", date(2024, 1, 1), "50", "0")
        engine.upsert_payroll_record(admin, "p1", date(2024, 1, 2), "50", "45")

        summary = engine.daily_cash_flow(admin, "2024-01-01")

        assert summary.date == date(2024, 1, 1)
        assert len(summary.collections) == 2
        assert summary.collections_total == Decimal("160.00")
        assert [t.amount for t in summary.expenses] == [Decimal("30.00")]
        assert summary.expenses_total == Decimal("30.00")
        assert summary.wages_paid == Decimal("30.00")
        assert summary.net == Decimal("130.00")

    def test_quiet_day(self, engine, admin):
        summary = engine.daily_cash_flow(admin, date(2024, 3, 1))
        assert summary.collections == ()
        assert summary.net == Decimal("0.00")
