"""
Module: cleanops_engines.recurrence
Responsibility:
    Expand a recurrence rule into the concrete calendar dates it produces
    inside a ``[start, end]`` window.  Feeds the recurring order
    orchestrator, which creates one work order per returned date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Every returned date satisfies ``start <= d <= end``.
    - Output is strictly ascending and finite.
    - Months lacking the requested date (Feb 30) or occurrence (a fifth
      Monday) contribute nothing; dates are never rolled over.

Failure modes:
    - ValueError from rule constructors on out-of-range fields.
    - InvalidInputError from ``parse_rule`` on an unrecognized payload.

Usage:
    from datetime import date
    from cleanops_engines.recurrence import Weekday, Weekly, expand

    expand(Weekly(Weekday.WEDNESDAY), date(2024, 1, 1), date(2024, 1, 31))
    # [2024-01-03, 2024-01-10, 2024-01-17, 2024-01-24, 2024-01-31]
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import IntEnum
from typing import Any, Mapping, Union

from cleanops_engines.tracer import traced_engine
from cleanops_kernel.exceptions import InvalidInputError


class Weekday(IntEnum):
    """Day of week, numbered like ``date.weekday()`` (Monday = 0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: Any) -> "Weekday":
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        text = str(value).strip().upper()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text]
        except KeyError:
            raise ValueError(f"Unknown weekday: {value!r}") from None


@dataclass(frozen=True)
class Weekly:
    weekday: Weekday


@dataclass(frozen=True)
class Biweekly:
    weekday: Weekday


@dataclass(frozen=True)
class MonthlyByDate:
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.day <= 31:
            raise ValueError(f"day must be 1-31, got {self.day}")


@dataclass(frozen=True)
class MonthlyByWeekday:
    """The ``nth`` (1-5) occurrence of ``weekday`` in each month."""

    nth: int
    weekday: Weekday

    def __post_init__(self) -> None:
        if not 1 <= self.nth <= 5:
            raise ValueError(f"nth must be 1-5, got {self.nth}")


RecurrenceRule = Union[Weekly, Biweekly, MonthlyByDate, MonthlyByWeekday]


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


def _first_on_or_after(start: date, weekday: Weekday) -> date:
    return start + timedelta(days=(weekday - start.weekday()) % 7)


def _every(start: date, end: date, weekday: Weekday, step_days: int) -> list[date]:
    dates: list[date] = []
    current = _first_on_or_after(start, weekday)
    step = timedelta(days=step_days)
    while current <= end:
        dates.append(current)
        current += step
    return dates


def _months_from(start: date):
    year, month = start.year, start.month
    while True:
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def _monthly_by_date(start: date, end: date, day: int) -> list[date]:
    dates: list[date] = []
    for year, month in _months_from(start):
        if date(year, month, 1) > end:
            break
        if day > calendar.monthrange(year, month)[1]:
            continue
        candidate = date(year, month, day)
        if candidate < start:
            continue
        if candidate > end:
            break
        dates.append(candidate)
    return dates


def nth_weekday_of_month(year: int, month: int, nth: int, weekday: Weekday) -> date | None:
    """The ``nth`` ``weekday`` of the month, or None if the month has fewer."""
    first = date(year, month, 1)
    day = 1 + (weekday - first.weekday()) % 7 + 7 * (nth - 1)
    if day > calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def _monthly_by_weekday(start: date, end: date, nth: int, weekday: Weekday) -> list[date]:
    dates: list[date] = []
    for year, month in _months_from(start):
        if year > end.year + 1 or date(year, month, 1) > end:
            break
        candidate = nth_weekday_of_month(year, month, nth, weekday)
        if candidate is None or candidate < start:
            continue
        if candidate > end:
            break
        dates.append(candidate)
    return dates


@traced_engine("recurrence", "1.0", fingerprint_fields=("rule", "start", "end"))
def expand(rule: RecurrenceRule, start: date, end: date) -> list[date]:
    """Dates produced by ``rule`` within ``[start, end]``, ascending."""
    if start > end:
        return []
    if isinstance(rule, Weekly):
        return _every(start, end, rule.weekday, 7)
    if isinstance(rule, Biweekly):
        return _every(start, end, rule.weekday, 14)
    if isinstance(rule, MonthlyByDate):
        return _monthly_by_date(start, end, rule.day)
    if isinstance(rule, MonthlyByWeekday):
        return _monthly_by_weekday(start, end, rule.nth, rule.weekday)
    raise TypeError(f"Unsupported recurrence rule: {rule!r}")


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

_RULE_TYPES = {
    "weekly": "weekly",
    "biweekly": "biweekly",
    "monthly_by_date": "monthly_by_date",
    "monthlybydate": "monthly_by_date",
    "monthly_by_weekday": "monthly_by_weekday",
    "monthlybyweekday": "monthly_by_weekday",
}


def parse_rule(data: Mapping[str, Any]) -> RecurrenceRule:
    """
    Build a rule from its JSON shape.

        {"type": "weekly", "weekday": "wednesday"}
        {"type": "biweekly", "weekday": 4}
        {"type": "monthly_by_date", "day": 30}
        {"type": "monthly_by_weekday", "nth": 2, "weekday": "tuesday"}
    """
    raw_type = str(data.get("type") or "").strip().lower()
    kind = _RULE_TYPES.get(raw_type)
    if kind is None:
        raise InvalidInputError("rule.type", f"unknown recurrence type {raw_type!r}")
    try:
        if kind == "weekly":
            return Weekly(Weekday.parse(data["weekday"]))
        if kind == "biweekly":
            return Biweekly(Weekday.parse(data["weekday"]))
        if kind == "monthly_by_date":
            return MonthlyByDate(int(data["day"]))
        return MonthlyByWeekday(int(data["nth"]), Weekday.parse(data["weekday"]))
    except KeyError as exc:
        raise InvalidInputError(f"rule.{exc.args[0]}", "is required") from exc
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("rule", str(exc)) from exc
