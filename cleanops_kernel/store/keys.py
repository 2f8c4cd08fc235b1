"""
Key layout for the key-ordered store.

    workorder:<wo_id>                           WorkOrder
    transaction:wo:<wo_id>:<seq>                nth income line recognized for a work order
    transaction:payroll:<personnel_id>:<date>   the day's payroll payment expense
    collection:wo:<wo_id>:<tx_id>               Collection mirroring income line <tx_id>
    payroll:<date>:<personnel_id>               PayrollRecord
    payroll_idx:<personnel_id>:<date>           balance index, sorted by date
    customer:<id> / personnel:<id>              reference entities

Ids never contain ':' (enforced by ``patches.parse_id``), so every
per-parent prefix below is unambiguous and a parent's children are a single
prefix scan.  Income lines of a work order are numbered; writing line
``seq`` with ``expected_version=0`` fails for the second of two concurrent
recognitions, which then re-reads and recomputes its delta.
"""

from datetime import date

WORK_ORDER_PREFIX = "workorder:"
TRANSACTION_PREFIX = "transaction:"
COLLECTION_PREFIX = "collection:"
PAYROLL_PREFIX = "payroll:"
PAYROLL_INDEX_PREFIX = "payroll_idx:"
CUSTOMER_PREFIX = "customer:"
PERSONNEL_PREFIX = "personnel:"

_SEQ_WIDTH = 6


def work_order_key(work_order_id: str) -> str:
    return f"{WORK_ORDER_PREFIX}{work_order_id}"


def work_order_transactions_prefix(work_order_id: str) -> str:
    return f"{TRANSACTION_PREFIX}wo:{work_order_id}:"


def work_order_transaction_key(work_order_id: str, seq: int) -> str:
    return f"{work_order_transactions_prefix(work_order_id)}{seq:0{_SEQ_WIDTH}d}"


def payroll_transaction_key(personnel_id: str, day: date) -> str:
    return f"{TRANSACTION_PREFIX}payroll:{personnel_id}:{day.isoformat()}"


def work_order_collections_prefix(work_order_id: str) -> str:
    return f"{COLLECTION_PREFIX}wo:{work_order_id}:"


def work_order_collection_key(work_order_id: str, transaction_id: str) -> str:
    return work_order_collections_prefix(work_order_id) + transaction_id


def payroll_day_prefix(day: date) -> str:
    return f"{PAYROLL_PREFIX}{day.isoformat()}:"


def payroll_key(day: date, personnel_id: str) -> str:
    return payroll_day_prefix(day) + personnel_id


def payroll_index_prefix(personnel_id: str) -> str:
    return f"{PAYROLL_INDEX_PREFIX}{personnel_id}:"


def payroll_index_key(personnel_id: str, day: date) -> str:
    return payroll_index_prefix(personnel_id) + day.isoformat()


def customer_key(customer_id: str) -> str:
    return f"{CUSTOMER_PREFIX}{customer_id}"


def personnel_key(personnel_id: str) -> str:
    return f"{PERSONNEL_PREFIX}{personnel_id}"
