"""
PayrollService -- daily wage ledger per employee.

Responsibility:
    Upsert one PayrollRecord per (personnel, day) with a carryover computed
    from the latest earlier record, keep the ``payroll_idx`` secondary index
    in step, write the day's payment expense, and restate later days when
    an earlier day changes.

Architecture: cleanops_services -- imperative shell over
    ``cleanops_engines.carryover``.

Invariants enforced:
    - ``carryover(d)`` is the balance of the latest record before ``d`` for
      the same personnel (0 if none); found with ``Store.last_before`` on
      the index, never by scanning the history.
    - At most one payroll expense transaction per (personnel, day), equal
      to that day's ``daily_payment``.
    - Writes to the same (personnel, day) are compare-and-set; a lost race
      is retried once with a fresh carryover.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from cleanops_config.schema import CategoryConfig
from cleanops_engines.carryover import build_record, restate
from cleanops_kernel.domain.clock import Clock, SystemClock
from cleanops_kernel.domain.entities import PayrollRecord, Transaction, TransactionType
from cleanops_kernel.domain.identity import Caller
from cleanops_kernel.domain.money import ZERO, money_str, to_money
from cleanops_kernel.domain.patches import parse_amount, parse_date, parse_id
from cleanops_kernel.exceptions import OptimisticLockError
from cleanops_kernel.logging_config import LogContext, get_logger
from cleanops_kernel.store.base import Store, with_read_retry
from cleanops_kernel.store.keys import (
    payroll_day_prefix,
    payroll_index_key,
    payroll_index_prefix,
    payroll_key,
    payroll_transaction_key,
)
from cleanops_services.directory import Directory
from cleanops_services.recognition_writer import new_id

logger = get_logger("services.payroll")

_UPSERT_ATTEMPTS = 2


@dataclass(frozen=True)
class PayrollBalances:
    """What the payroll screen shows for one day."""

    date: date
    records: tuple[PayrollRecord, ...]
    # personnel without a record on ``date`` -> balance carried into it
    previous_balances: dict[str, Decimal] = field(default_factory=dict)


class PayrollService:
    def __init__(
        self,
        store: Store,
        categories: CategoryConfig,
        clock: Clock | None = None,
        directory: Directory | None = None,
        id_factory: Callable[[], str] = new_id,
        read_retry_attempts: int = 2,
    ) -> None:
        self._store = store
        self._categories = categories
        self._clock = clock or SystemClock()
        self._directory = directory or Directory(store, read_retry_attempts)
        self._new_id = id_factory
        self._attempts = read_retry_attempts

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def prior_balance(self, personnel_id: str, day: date) -> Decimal | None:
        """Balance of the latest record strictly before ``day``, or None."""
        entry = with_read_retry(
            lambda: self._store.last_before(
                payroll_index_prefix(personnel_id),
                payroll_index_key(personnel_id, day),
            ),
            self._attempts,
        )
        return to_money(entry.value["balance"]) if entry is not None else None

    def get_record(self, personnel_id: str, day: date) -> PayrollRecord | None:
        entry = with_read_retry(
            lambda: self._store.get_entry(payroll_key(day, personnel_id)), self._attempts
        )
        return PayrollRecord.from_record(entry.value, entry.version) if entry else None

    def history(self, personnel_id: str) -> list[PayrollRecord]:
        """All records of one employee, oldest first."""
        index = with_read_retry(
            lambda: self._store.scan_items(payroll_index_prefix(personnel_id)),
            self._attempts,
        )
        records = []
        for entry in index:
            record = self.get_record(personnel_id, date.fromisoformat(entry.value["date"]))
            if record is not None:
                records.append(record)
        return records

    def get_balances(self, day: date | str) -> PayrollBalances:
        day = parse_date("date", day)
        entries = with_read_retry(
            lambda: self._store.scan_items(payroll_day_prefix(day)), self._attempts
        )
        records = tuple(
            sorted(
                (PayrollRecord.from_record(e.value, e.version) for e in entries),
                key=lambda r: (r.personnel_name, r.personnel_id),
            )
        )
        recorded = {r.personnel_id for r in records}
        previous: dict[str, Decimal] = {}
        for person in self._directory.list_personnel():
            if person.id not in recorded:
                previous[person.id] = self.prior_balance(person.id, day) or ZERO
        return PayrollBalances(date=day, records=records, previous_balances=previous)

    # -----------------------------------------------------------------
    # Upsert
    # -----------------------------------------------------------------

    def upsert(
        self,
        personnel_id: str,
        day: date | str,
        daily_wage: Decimal | str | int,
        daily_payment: Decimal | str | int,
        caller: Caller,
    ) -> PayrollRecord:
        personnel_id = parse_id("personnel_id", personnel_id)
        day = parse_date("date", day)
        wage = parse_amount("daily_wage", daily_wage)
        payment = parse_amount("daily_payment", daily_payment)
        person = self._directory.get_personnel(personnel_id)

        with LogContext.bind(personnel_id=personnel_id, actor_id=caller.id):
            record = self._write_day(personnel_id, person.name, day, wage, payment, caller)
            self._write_expense(record, caller)
            restated = self._restate_later(record)
            logger.info(
                "payroll_upserted",
                extra={
                    "work_date": day,
                    "carryover": record.carryover,
                    "daily_wage": wage,
                    "daily_payment": payment,
                    "balance": record.balance,
                    "restated_days": restated,
                },
            )
        return record

    def _write_day(
        self,
        personnel_id: str,
        personnel_name: str,
        day: date,
        wage: Decimal,
        payment: Decimal,
        caller: Caller,
    ) -> PayrollRecord:
        key = payroll_key(day, personnel_id)
        for attempt in range(1, _UPSERT_ATTEMPTS + 1):
            existing = self._store.get_entry(key)
            record = build_record(
                personnel_id=personnel_id,
                personnel_name=personnel_name,
                day=day,
                prior_balance=self.prior_balance(personnel_id, day),
                daily_wage=wage,
                daily_payment=payment,
                updated_at=self._clock.now(),
                updated_by=caller.id,
            )
            try:
                version = self._store.set(
                    key,
                    record.to_record(),
                    expected_version=existing.version if existing else 0,
                )
            except OptimisticLockError:
                if attempt == _UPSERT_ATTEMPTS:
                    raise
                logger.warning("payroll_upsert_conflict_retry", extra={"work_date": day})
                continue
            self._write_index(record)
            return replace(record, version=version)
        raise AssertionError("unreachable")

    def _write_index(self, record: PayrollRecord) -> None:
        self._store.set(
            payroll_index_key(record.personnel_id, record.date),
            {"date": record.date.isoformat(), "balance": money_str(record.balance)},
        )

    def _write_expense(self, record: PayrollRecord, caller: Caller) -> None:
        key = payroll_transaction_key(record.personnel_id, record.date)
        if record.daily_payment <= 0:
            if self._store.delete(key):
                logger.info("payroll_expense_removed", extra={"work_date": record.date})
            return
        expense = Transaction(
            id=self._new_id(),
            type=TransactionType.EXPENSE,
            amount=record.daily_payment,
            date=record.date,
            category=self._categories.payroll,
            description=f"Wage payment - {record.personnel_name or record.personnel_id}",
            related_personnel_id=record.personnel_id,
            created_by=caller.id,
            created_at=self._clock.now(),
        )
        self._store.set(key, expense.to_record())

    def _later_records(self, record: PayrollRecord) -> list[PayrollRecord]:
        later: list[PayrollRecord] = []
        for entry in self._store.scan_items(payroll_index_prefix(record.personnel_id)):
            later_day = date.fromisoformat(entry.value["date"])
            if later_day > record.date:
                existing = self.get_record(record.personnel_id, later_day)
                if existing is not None:
                    later.append(existing)
        return later

    def _restate_later(self, record: PayrollRecord) -> int:
        """Re-chain later days of the same employee; returns how many changed.

        A lost compare-and-set re-reads the later days and re-chains once
        more.  Days written before the conflict already carry the right
        balance, so the second pass only touches what is still stale.
        """
        restated = 0
        for attempt in range(1, _UPSERT_ATTEMPTS + 1):
            changed = restate(record.balance, self._later_records(record), self._clock.now())
            try:
                for updated in changed:
                    self._store.set(
                        payroll_key(updated.date, updated.personnel_id),
                        updated.to_record(),
                        expected_version=updated.version,
                    )
                    self._write_index(updated)
                    restated += 1
            except OptimisticLockError:
                if attempt == _UPSERT_ATTEMPTS:
                    logger.error(
                        "payroll_restatement_incomplete",
                        extra={
                            "work_date": record.date,
                            "stale_dates": [r.date for r in changed],
                        },
                    )
                    raise
                logger.warning("payroll_restate_conflict_retry", extra={"work_date": record.date})
                continue
            return restated
        return restated
