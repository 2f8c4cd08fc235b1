"""
Module: cleanops_engines.carryover
Responsibility:
    Running wage balance per employee.  Computes a day's PayrollRecord from
    the latest earlier balance, and restates later days when an earlier day
    changes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``balance = carryover + daily_wage - daily_payment``.
    - ``carryover(d)`` equals the balance of the latest earlier record of
      the same personnel, or zero when there is none.  Callers never supply
      carryover.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

from cleanops_engines.tracer import traced_engine
from cleanops_kernel.domain.entities import PayrollRecord
from cleanops_kernel.domain.money import ZERO, round_money


def compute_balance(carryover: Decimal, daily_wage: Decimal, daily_payment: Decimal) -> Decimal:
    return round_money(carryover + daily_wage - daily_payment)


@traced_engine("carryover", "1.0", fingerprint_fields=("personnel_id", "day", "prior_balance"))
def build_record(
    personnel_id: str,
    day: date,
    prior_balance: Decimal | None,
    daily_wage: Decimal,
    daily_payment: Decimal,
    updated_at: datetime,
    personnel_name: str = "",
    updated_by: str | None = None,
) -> PayrollRecord:
    if daily_wage < 0:
        raise ValueError("daily_wage must not be negative")
    if daily_payment < 0:
        raise ValueError("daily_payment must not be negative")
    carryover = prior_balance if prior_balance is not None else ZERO
    return PayrollRecord(
        personnel_id=personnel_id,
        personnel_name=personnel_name,
        date=day,
        carryover=carryover,
        daily_wage=daily_wage,
        daily_payment=daily_payment,
        balance=compute_balance(carryover, daily_wage, daily_payment),
        updated_at=updated_at,
        updated_by=updated_by,
    )


def restate(
    opening_balance: Decimal,
    later_records: Sequence[PayrollRecord],
    updated_at: datetime,
) -> list[PayrollRecord]:
    """
    Re-chain ``later_records`` (ascending by date) from ``opening_balance``.

    Returns only the records whose carryover actually changed, each with its
    balance recomputed.  Wage and payment figures are left untouched.
    """
    changed: list[PayrollRecord] = []
    balance = opening_balance
    for record in sorted(later_records, key=lambda r: r.date):
        if record.carryover != balance:
            record = replace(
                record,
                carryover=balance,
                balance=compute_balance(balance, record.daily_wage, record.daily_payment),
                updated_at=updated_at,
            )
            changed.append(record)
        balance = record.balance
    return changed
