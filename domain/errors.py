"""
Domain: rotation error taxonomy.

"No eligible broker" and "already assigned" are valid terminal outcomes of an
assignment and are reported through AssignmentStatus (see domain/assignment.py),
not raised. Everything here is raised.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID


class RotationError(Exception):
    """Base class for broker rotation errors."""


class ContentionTimeout(RotationError):
    """
    Raised when a lock on roster or lead rows could not be acquired in time.

    Retryable: the atomic unit was rolled back and nothing was written.
    """

    retryable = True

    def __init__(self, operation: str, timeout_ms: Optional[int] = None):
        self.operation = operation
        self.timeout_ms = timeout_ms
        detail = f" after {timeout_ms}ms" if timeout_ms is not None else ""
        super().__init__(f"Lock wait timed out during {operation}{detail}")


class AlreadyEnrolled(RotationError):
    """Raised when enrolling a broker that already has an active roster entry."""

    def __init__(self, broker_id: UUID, entry_id: int):
        self.broker_id = broker_id
        self.entry_id = entry_id
        super().__init__(f"Broker {broker_id} is already enrolled (roster entry {entry_id})")


class NotFound(RotationError):
    """Raised when a mutation references an unknown lead, broker or roster entry."""

    def __init__(self, kind: str, identifier: object):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class BrokerNotEligible(RotationError):
    """Raised when a profile cannot join the rotation (wrong role or inactive)."""

    def __init__(self, broker_id: UUID, reason: str):
        self.broker_id = broker_id
        self.reason = reason
        super().__init__(f"Profile {broker_id} cannot be enrolled: {reason}")


class ProtectedFieldError(RotationError):
    """Raised when a generic update tries to write assignment-owned lead fields."""

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(
            "Fields owned by the assignment engine cannot be updated: "
            + ", ".join(self.fields)
        )


class LeadNotAssigned(RotationError):
    """Raised when a follow-up status is set on a lead no broker handles yet."""

    def __init__(self, lead_id: UUID):
        self.lead_id = lead_id
        super().__init__(
            f"Lead {lead_id} has no handling broker yet; "
            "its status leaves 'pending' only through assignment"
        )


__all__ = [
    "AlreadyEnrolled",
    "BrokerNotEligible",
    "ContentionTimeout",
    "LeadNotAssigned",
    "NotFound",
    "ProtectedFieldError",
    "RotationError",
]
