"""
Domain entities -- frozen dataclasses persisted as JSON records.

Responsibility:
    The nouns of the engine: work orders, income/expense transactions,
    customer collections, daily payroll records, and the reference
    customer / personnel entries they point at.  Each entity round-trips
    through ``to_record()`` / ``from_record()`` to the JSON-compatible dict
    held by the store.

Invariants enforced:
    - All monetary fields are ``Decimal`` (stored as fixed two-place strings).
    - Dates are stored as ISO ``YYYY-MM-DD`` strings, timestamps as ISO
      8601 with offset.
    - ``version`` is owned by the store adapter; it is never written into
      the record body.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from cleanops_kernel.domain.money import ZERO, money_str, to_money


class WorkOrderStatus(str, Enum):
    """Work order lifecycle states (advance only, never regress)."""

    DRAFT = "draft"
    APPROVED = "approved"
    COMPLETED = "completed"


WORK_ORDER_TRANSITIONS: dict[WorkOrderStatus, frozenset[WorkOrderStatus]] = {
    WorkOrderStatus.DRAFT: frozenset({WorkOrderStatus.APPROVED}),
    WorkOrderStatus.APPROVED: frozenset({WorkOrderStatus.COMPLETED}),
    WorkOrderStatus.COMPLETED: frozenset(),
}

# Drafts are never purged; only orders that may carry recognized money.
DELETABLE_STATUSES: frozenset[WorkOrderStatus] = frozenset({
    WorkOrderStatus.APPROVED,
    WorkOrderStatus.COMPLETED,
})


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Tolerate full timestamps written by older clients ("2024-01-03T00:00:00Z")
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# ---------------------------------------------------------------------------
# Work orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkOrder:
    """A scheduled unit of billable work."""

    id: str
    customer_id: str
    date: date
    status: WorkOrderStatus
    created_at: datetime
    customer_name: str = ""
    customer_address: str = ""
    personnel_ids: frozenset[str] = field(default_factory=frozenset)
    description: str = ""
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: str | None = None
    created_by_name: str | None = None
    recurrence_tag: str | None = None
    auto_approved: bool = False
    updated_at: datetime | None = None
    version: int = 0

    @property
    def remaining_amount(self) -> Decimal:
        remaining = self.total_amount - self.paid_amount
        return remaining if remaining > 0 else ZERO

    def with_changes(self, **changes: Any) -> "WorkOrder":
        return replace(self, **changes)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "personnel_ids": sorted(self.personnel_ids),
            "date": self.date.isoformat(),
            "description": self.description,
            "total_amount": money_str(self.total_amount),
            "paid_amount": money_str(self.paid_amount),
            "status": self.status.value,
            "approved_at": _iso(self.approved_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "created_by": self.created_by,
            "created_by_name": self.created_by_name,
            "recurrence_tag": self.recurrence_tag,
            "auto_approved": self.auto_approved,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], version: int = 0) -> "WorkOrder":
        return cls(
            id=record["id"],
            customer_id=record["customer_id"],
            customer_name=record.get("customer_name") or "",
            customer_address=record.get("customer_address") or "",
            personnel_ids=frozenset(record.get("personnel_ids") or ()),
            date=_parse_date(record["date"]),
            description=record.get("description") or "",
            total_amount=to_money(record.get("total_amount")),
            paid_amount=to_money(record.get("paid_amount")),
            status=WorkOrderStatus(record["status"]),
            approved_at=_parse_datetime(record.get("approved_at")),
            completed_at=_parse_datetime(record.get("completed_at")),
            created_at=_parse_datetime(record.get("created_at")),
            created_by=record.get("created_by"),
            created_by_name=record.get("created_by_name"),
            recurrence_tag=record.get("recurrence_tag"),
            auto_approved=bool(record.get("auto_approved", False)),
            updated_at=_parse_datetime(record.get("updated_at")),
            version=version,
        )


# ---------------------------------------------------------------------------
# Ledger lines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """An income/expense ledger line. Immutable once written."""

    id: str
    type: TransactionType
    amount: Decimal
    date: date
    category: str = ""
    description: str = ""
    related_customer_id: str | None = None
    related_work_order_id: str | None = None
    related_personnel_id: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("Transaction amount must be positive")

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": money_str(self.amount),
            "date": self.date.isoformat(),
            "category": self.category,
            "description": self.description,
            "related_customer_id": self.related_customer_id,
            "related_work_order_id": self.related_work_order_id,
            "related_personnel_id": self.related_personnel_id,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Transaction":
        return cls(
            id=record["id"],
            type=TransactionType(record["type"]),
            amount=to_money(record["amount"]),
            date=_parse_date(record["date"]),
            category=record.get("category") or "",
            description=record.get("description") or "",
            related_customer_id=record.get("related_customer_id"),
            related_work_order_id=record.get("related_work_order_id"),
            related_personnel_id=record.get("related_personnel_id"),
            created_by=record.get("created_by"),
            created_at=_parse_datetime(record.get("created_at")),
        )


@dataclass(frozen=True)
class Collection:
    """A customer-facing cash receipt, paired 1:1 with an income Transaction."""

    id: str
    customer_id: str
    amount: Decimal
    date: date
    work_date: date
    customer_name: str = ""
    description: str = ""
    related_work_order_id: str | None = None
    related_transaction_id: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "amount": money_str(self.amount),
            "date": self.date.isoformat(),
            "work_date": self.work_date.isoformat(),
            "description": self.description,
            "related_work_order_id": self.related_work_order_id,
            "related_transaction_id": self.related_transaction_id,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Collection":
        return cls(
            id=record["id"],
            customer_id=record["customer_id"],
            customer_name=record.get("customer_name") or "",
            amount=to_money(record["amount"]),
            date=_parse_date(record["date"]),
            work_date=_parse_date(record.get("work_date") or record["date"]),
            description=record.get("description") or "",
            related_work_order_id=record.get("related_work_order_id"),
            related_transaction_id=record.get("related_transaction_id"),
            created_by=record.get("created_by"),
            created_at=_parse_datetime(record.get("created_at")),
        )


# ---------------------------------------------------------------------------
# Payroll
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayrollRecord:
    """One employee's wage activity for one day."""

    personnel_id: str
    date: date
    carryover: Decimal
    daily_wage: Decimal
    daily_payment: Decimal
    balance: Decimal
    personnel_name: str = ""
    updated_at: datetime | None = None
    updated_by: str | None = None
    version: int = 0

    def to_record(self) -> dict[str, Any]:
        return {
            "personnel_id": self.personnel_id,
            "personnel_name": self.personnel_name,
            "date": self.date.isoformat(),
            "carryover": money_str(self.carryover),
            "daily_wage": money_str(self.daily_wage),
            "daily_payment": money_str(self.daily_payment),
            "balance": money_str(self.balance),
            "updated_at": _iso(self.updated_at),
            "updated_by": self.updated_by,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], version: int = 0) -> "PayrollRecord":
        return cls(
            personnel_id=record["personnel_id"],
            personnel_name=record.get("personnel_name") or "",
            date=_parse_date(record["date"]),
            carryover=to_money(record.get("carryover")),
            daily_wage=to_money(record.get("daily_wage")),
            daily_payment=to_money(record.get("daily_payment")),
            balance=to_money(record.get("balance")),
            updated_at=_parse_datetime(record.get("updated_at")),
            updated_by=record.get("updated_by"),
            version=version,
        )


# ---------------------------------------------------------------------------
# Reference entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    address: str = ""
    phone: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Customer":
        contact = record.get("contact_info") or {}
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            address=record.get("address") or "",
            phone=record.get("phone") or contact.get("phone") or "",
        )

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "address": self.address, "phone": self.phone}


@dataclass(frozen=True)
class Personnel:
    id: str
    name: str
    phone: str = ""
    active: bool = True

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Personnel":
        contact = record.get("contact_info") or {}
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            phone=record.get("phone") or contact.get("phone") or "",
            active=bool(record.get("active", True)),
        )

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "phone": self.phone, "active": self.active}
