"""
Caller identity as seen by the engine.

Authentication lives outside the engine; whatever authenticates a request
hands the services a ``Caller``.  The core only records ``id`` / ``name`` on
what it writes and never branches on ``role`` (role checks belong to
``cleanops_services.rbac_authority``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Caller:
    id: str
    name: str = ""
    role: str | None = None


# Actor recorded on writes made by the auto-approval sweep and other
# background work.
SYSTEM_CALLER = Caller(id="system", name="System", role="system")


class IdentityProvider(Protocol):
    """Resolves the current caller, or ``None`` when unauthenticated."""

    def current_caller(self) -> Caller | None:
        ...
