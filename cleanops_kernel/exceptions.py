"""
Typed exception hierarchy for the cleanops engine.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
carrying the entity and the violated rule.

    CleanOpsError (base)
    |
    +-- NotFoundError
    +-- InvalidInputError
    +-- InvalidTransitionError
    +-- PermissionDeniedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- StoreUnavailableError
        +-- RecognitionIncompleteError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Lookup          | NOT_FOUND                   | Unknown work order / customer / record id
Validation      | INVALID_INPUT               | Missing customer/date, bad amount, unknown patch field
Lifecycle       | INVALID_TRANSITION          | Completing a draft, deleting a draft, re-approving
Authorization   | PERMISSION_DENIED           | Role may not perform the operation
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Record version changed between read and write
Store           | STORE_UNAVAILABLE           | I/O failure or timeout in the store collaborator
                | RECOGNITION_INCOMPLETE      | Store failed between the transaction and collection writes

Handling patterns:

    InvalidInputError / InvalidTransitionError are terminal -- surface them,
    never retry.

    StoreUnavailableError with ``retryable=True`` (reads) may be retried by
    the caller.  Writes carry ``retryable=False``.

    RecognitionIncompleteError is never retried blindly: it records which of
    the two recognition writes succeeded so the reconciliation pass can
    repair the pair.
"""

from decimal import Decimal


class CleanOpsError(Exception):
    """
    Base exception for all cleanops errors.

    All subclasses carry a ``code`` class attribute.
    """

    code: str = "CLEANOPS_ERROR"


class NotFoundError(CleanOpsError):
    """Entity with given id was not found."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class InvalidInputError(CleanOpsError):
    """Caller-supplied data violates a validation rule."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidTransitionError(CleanOpsError):
    """Requested lifecycle change is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_id: str, current: str, target: str, reason: str):
        self.entity_id = entity_id
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(
            f"Cannot move {entity_id} from {current} to {target}: {reason}"
        )


class PermissionDeniedError(CleanOpsError):
    """Caller role is not allowed to perform the operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str | None, operation: str, reason: str = ""):
        self.role = role
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Role '{role}' may not perform {operation}"
            + (f": {reason}" if reason else "")
        )


# Concurrency


class ConcurrencyError(CleanOpsError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Record changed between read and compare-and-set write."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, key: str, expected_version: int | None, actual_version: int | None):
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification of {key}: expected version "
            f"{expected_version}, found {actual_version}"
        )


# Store


class StoreUnavailableError(CleanOpsError):
    """The store collaborator failed or timed out."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(
        self,
        operation: str,
        key: str | None,
        reason: str,
        retryable: bool = False,
    ):
        self.operation = operation
        self.key = key
        self.reason = reason
        self.retryable = retryable
        super().__init__(f"Store {operation} failed for {key}: {reason}")


class RecognitionIncompleteError(StoreUnavailableError):
    """
    Store failed part-way through writing a Transaction + Collection pair.

    ``transaction_written`` / ``collection_written`` record which writes
    landed, so the reconciliation pass can backfill the missing half.
    """

    code: str = "RECOGNITION_INCOMPLETE"

    def __init__(
        self,
        work_order_id: str,
        delta: Decimal,
        transaction_written: bool,
        collection_written: bool,
        reason: str,
    ):
        self.work_order_id = work_order_id
        self.delta = delta
        self.transaction_written = transaction_written
        self.collection_written = collection_written
        super().__init__(
            operation="recognize",
            key=work_order_id,
            reason=(
                f"{reason} (delta={delta}, transaction_written="
                f"{transaction_written}, collection_written={collection_written})"
            ),
            retryable=False,
        )
