"""
Module: cleanops_engines
Responsibility:
    Pure calculation engines: recurrence expansion, payment recognition,
    payroll carryover and recognition reconciliation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import cleanops_kernel.domain and cleanops_kernel.exceptions.
    MUST NOT import cleanops_services or any store adapter.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Timestamps and generated ids are passed in by services.
    - Decimal-only arithmetic for every monetary amount.
"""

from cleanops_engines.carryover import build_record, compute_balance, restate
from cleanops_engines.recognition import (
    RecognitionPlan,
    build_collection,
    plan_recognition,
    recognized_amount,
    unrecognized_delta,
)
from cleanops_engines.reconciliation import (
    Finding,
    FindingKind,
    ReconciliationResult,
    reconcile,
)
from cleanops_engines.recurrence import (
    Biweekly,
    MonthlyByDate,
    MonthlyByWeekday,
    RecurrenceRule,
    Weekday,
    Weekly,
    expand,
    parse_rule,
)

__all__ = [
    "Biweekly",
    "Finding",
    "FindingKind",
    "MonthlyByDate",
    "MonthlyByWeekday",
    "RecognitionPlan",
    "ReconciliationResult",
    "RecurrenceRule",
    "Weekday",
    "Weekly",
    "build_collection",
    "build_record",
    "compute_balance",
    "expand",
    "parse_rule",
    "plan_recognition",
    "recognized_amount",
    "reconcile",
    "restate",
    "unrecognized_delta",
]
