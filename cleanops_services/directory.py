"""
Directory -- read access to reference customers and personnel.

Customers and personnel are maintained by screens outside this engine; the
engine only reads them by id to copy names and addresses onto what it
writes.  ``put_*`` exist for intake tooling and test fixtures.
"""

from __future__ import annotations

from cleanops_kernel.domain.entities import Customer, Personnel
from cleanops_kernel.domain.patches import parse_id
from cleanops_kernel.exceptions import NotFoundError
from cleanops_kernel.logging_config import get_logger
from cleanops_kernel.store.base import Store, with_read_retry
from cleanops_kernel.store.keys import (
    PERSONNEL_PREFIX,
    customer_key,
    personnel_key,
)

logger = get_logger("services.directory")


class Directory:
    def __init__(self, store: Store, read_retry_attempts: int = 2) -> None:
        self._store = store
        self._attempts = read_retry_attempts

    def get_customer(self, customer_id: str) -> Customer:
        record = with_read_retry(
            lambda: self._store.get(customer_key(customer_id)), self._attempts
        )
        if record is None:
            raise NotFoundError("Customer", customer_id)
        return Customer.from_record(record)

    def get_personnel(self, personnel_id: str) -> Personnel:
        record = with_read_retry(
            lambda: self._store.get(personnel_key(personnel_id)), self._attempts
        )
        if record is None:
            raise NotFoundError("Personnel", personnel_id)
        return Personnel.from_record(record)

    def list_personnel(self, active_only: bool = True) -> list[Personnel]:
        records = with_read_retry(
            lambda: self._store.scan_by_prefix(PERSONNEL_PREFIX), self._attempts
        )
        people = [Personnel.from_record(r) for r in records]
        if active_only:
            people = [p for p in people if p.active]
        return sorted(people, key=lambda p: (p.name, p.id))

    def put_customer(self, customer: Customer) -> Customer:
        parse_id("customer_id", customer.id)
        self._store.set(customer_key(customer.id), customer.to_record())
        logger.info("customer_saved", extra={"customer_id": customer.id})
        return customer

    def put_personnel(self, personnel: Personnel) -> Personnel:
        parse_id("personnel_id", personnel.id)
        self._store.set(personnel_key(personnel.id), personnel.to_record())
        logger.info("personnel_saved", extra={"personnel_id": personnel.id})
        return personnel
