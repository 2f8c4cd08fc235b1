"""
Input types for work order mutations.

Responsibility:
    Turn loosely-typed caller payloads (dicts from an HTTP handler, CSV
    intake rows, recurring templates) into explicit, validated value
    objects before any service touches the store.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - A patch may only name fields in ``WorkOrderPatch.MUTABLE_FIELDS``;
      status, ids, timestamps and audit fields are rejected.
    - Transition extras are validated against ``TRANSITION_EXTRA_FIELDS``
      for the target status.
    - Amounts are non-negative Decimals; ``paid_amount`` never exceeds
      ``total_amount`` on a draft.

Failure modes:
    - InvalidInputError naming the offending field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from cleanops_kernel.domain.entities import WorkOrderStatus
from cleanops_kernel.domain.money import ZERO, to_money
from cleanops_kernel.exceptions import InvalidInputError

OVERPAYMENT_REASON = "payment amount exceeds remaining balance"


def parse_amount(field_name: str, value: Any) -> Decimal:
    """Parse a non-negative monetary amount or raise InvalidInputError."""
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise InvalidInputError(field_name, str(exc)) from exc
    if amount < 0:
        raise InvalidInputError(field_name, "must not be negative")
    return amount


def parse_date(field_name: str, value: Any) -> date:
    """Parse a calendar date (``date`` or ISO string) or raise InvalidInputError."""
    if value is None or value == "":
        raise InvalidInputError(field_name, "is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise InvalidInputError(field_name, f"not an ISO date: {value!r}") from exc


def parse_id(field_name: str, value: Any) -> str:
    """Validate an entity id used inside store keys."""
    if value is None or not str(value).strip():
        raise InvalidInputError(field_name, "is required")
    text = str(value).strip()
    if ":" in text:
        raise InvalidInputError(field_name, "must not contain ':'")
    return text


_TRUE_FLAGS = frozenset({"true", "1", "yes", "on"})
_FALSE_FLAGS = frozenset({"false", "0", "no", "off", ""})


def parse_flag(field_name: str, value: Any, default: bool = False) -> bool:
    """Parse a boolean that may arrive as a CSV cell ("false", "Yes", "0")."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_FLAGS:
            return True
        if text in _FALSE_FLAGS:
            return False
    raise InvalidInputError(field_name, f"not a true/false value: {value!r}")


def _parse_tag(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise InvalidInputError("recurrence_tag", "must be a string")
    return str(value).strip() or None


def _parse_personnel(value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [v for v in value.split(",") if v.strip()]
    return frozenset(parse_id("personnel_ids", v) for v in value)


def _reject_unknown(data: Mapping[str, Any], allowed: frozenset[str], reason: str) -> None:
    for key in sorted(data):
        if key not in allowed:
            raise InvalidInputError(key, reason)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkOrderDraft:
    """Candidate work order, as supplied to ``create`` / ``bulk_create``."""

    customer_id: str
    date: date
    personnel_ids: frozenset[str] = field(default_factory=frozenset)
    description: str = ""
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    auto_approve: bool = False
    recurrence_tag: str | None = None

    FIELDS = frozenset({
        "customer_id", "date", "personnel_ids", "description",
        "total_amount", "paid_amount", "auto_approve", "recurrence_tag",
    })

    def __post_init__(self) -> None:
        if self.paid_amount > self.total_amount:
            raise InvalidInputError("paid_amount", OVERPAYMENT_REASON)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WorkOrderDraft":
        _reject_unknown(data, cls.FIELDS, "unknown work order field")
        return cls(
            customer_id=parse_id("customer_id", data.get("customer_id")),
            date=parse_date("date", data.get("date")),
            personnel_ids=_parse_personnel(data.get("personnel_ids")),
            description=str(data.get("description") or ""),
            total_amount=parse_amount("total_amount", data.get("total_amount")),
            paid_amount=parse_amount("paid_amount", data.get("paid_amount")),
            auto_approve=parse_flag("auto_approve", data.get("auto_approve")),
            recurrence_tag=_parse_tag(data.get("recurrence_tag")),
        )

    def for_date(self, day: date, recurrence_tag: str | None = None) -> "WorkOrderDraft":
        """Copy of this template scheduled on ``day``."""
        return WorkOrderDraft(
            customer_id=self.customer_id,
            date=day,
            personnel_ids=self.personnel_ids,
            description=self.description,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            auto_approve=self.auto_approve,
            recurrence_tag=recurrence_tag if recurrence_tag is not None else self.recurrence_tag,
        )


# ---------------------------------------------------------------------------
# Field updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkOrderPatch:
    """
    Explicit field update for an existing work order.

    ``None`` means "leave unchanged".
    """

    personnel_ids: frozenset[str] | None = None
    date: date | None = None
    description: str | None = None
    total_amount: Decimal | None = None
    paid_amount: Decimal | None = None

    MUTABLE_FIELDS = frozenset({
        "personnel_ids", "date", "description", "total_amount", "paid_amount",
    })

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WorkOrderPatch":
        _reject_unknown(data, cls.MUTABLE_FIELDS, "field is not updatable")
        kwargs: dict[str, Any] = {}
        if "personnel_ids" in data:
            kwargs["personnel_ids"] = _parse_personnel(data["personnel_ids"])
        if "date" in data:
            kwargs["date"] = parse_date("date", data["date"])
        if "description" in data:
            kwargs["description"] = str(data["description"] or "")
        if "total_amount" in data:
            kwargs["total_amount"] = parse_amount("total_amount", data["total_amount"])
        if "paid_amount" in data:
            kwargs["paid_amount"] = parse_amount("paid_amount", data["paid_amount"])
        return cls(**kwargs)

    def changes(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in sorted(self.MUTABLE_FIELDS)
            if getattr(self, name) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.changes()


# ---------------------------------------------------------------------------
# Transition extras
# ---------------------------------------------------------------------------

TRANSITION_EXTRA_FIELDS: dict[WorkOrderStatus, frozenset[str]] = {
    WorkOrderStatus.APPROVED: frozenset(),
    WorkOrderStatus.COMPLETED: frozenset({"paid_amount"}),
}


@dataclass(frozen=True)
class TransitionExtra:
    paid_amount: Decimal | None = None

    @classmethod
    def from_mapping(
        cls,
        target: WorkOrderStatus,
        data: Mapping[str, Any] | None,
    ) -> "TransitionExtra":
        if not data:
            return cls()
        allowed = TRANSITION_EXTRA_FIELDS.get(target, frozenset())
        _reject_unknown(data, allowed, f"not accepted when moving to {target.value}")
        paid = data.get("paid_amount")
        return cls(
            paid_amount=parse_amount("paid_amount", paid) if paid is not None else None,
        )
