"""
cleanops_services.rbac_authority -- role -> operation checks for the outer layer.

Responsibility:
    Answer "may a caller with this role run this operation?" from the
    ``roles`` table of the engine configuration.

Architecture position:
    Services layer.  The lifecycle, sweep and payroll services are
    role-agnostic; ``OperationsEngine`` consults this module before
    delegating.

Invariants:
    - Deny by default: an operation missing from the table, or a caller
      without a role, is refused.
"""

from __future__ import annotations

from collections.abc import Mapping

from cleanops_kernel.exceptions import PermissionDeniedError

OPERATIONS: tuple[str, ...] = (
    "create_work_order",
    "bulk_create_work_orders",
    "list_work_orders",
    "transition_work_order",
    "update_work_order_fields",
    "record_work_order_payment",
    "delete_work_order",
    "create_recurring_work_orders",
    "run_auto_approval_sweep",
    "upsert_payroll_record",
    "get_payroll_balances",
    "reconcile_work_order",
    "pending_collections",
    "daily_cash_flow",
)


def check_operation(
    roles: Mapping[str, frozenset[str]],
    role: str | None,
    operation: str,
) -> tuple[bool, str]:
    """Check whether ``role`` may perform ``operation``.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if operation not in roles:
        return (False, f"operation '{operation}' has no role grant")
    if not role or not role.strip():
        return (False, "caller has no role")
    if role not in roles[operation]:
        return (False, f"role '{role}' not granted '{operation}'")
    return (True, "")


def require_operation(
    roles: Mapping[str, frozenset[str]],
    role: str | None,
    operation: str,
) -> None:
    """Raise PermissionDeniedError unless ``role`` may perform ``operation``."""
    allowed, reason = check_operation(roles, role, operation)
    if not allowed:
        raise PermissionDeniedError(role, operation, reason)
