"""
Domain: Lead entity.

A Lead is a prospective-customer contact captured by the public contact form.

Rules implemented here:
- A Lead is created in PENDING status with no handling broker.
- handled_by transitions from None to a broker exactly once through the
  assignment engine, and handled_at is set together with it.
- Generic updates (broker dashboard) may only touch status and observations;
  the assignment-owned fields are rejected outright.
- Status changes through an update require a handling broker, so an
  unassigned lead stays PENDING until the assignment engine picks it up.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .errors import LeadNotAssigned, ProtectedFieldError
from .time import require_optional_utc_timestamp, require_utc_timestamp


class LeadStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


# Statuses a broker may move a lead into after it has been assigned.
# PENDING and ASSIGNED are only ever set by intake and the assignment engine.
FOLLOW_UP_STATUSES = frozenset(
    {LeadStatus.CONTACTED, LeadStatus.QUALIFIED, LeadStatus.CONVERTED, LeadStatus.LOST}
)

ENGINE_OWNED_FIELDS = frozenset({"handled_by", "handled_at"})


def _require_text(name: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required")


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Immutability:
    - Frozen; assignment returns a new instance via `assigned_to`.
    """

    lead_id: UUID
    name: str
    email: str
    phone: str
    created_at: datetime
    status: LeadStatus = LeadStatus.PENDING
    location_interest: Optional[str] = None
    property_type: Optional[str] = None
    price_range: Optional[str] = None
    observations: Optional[str] = None
    handled_by: Optional[UUID] = None
    handled_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        _require_text("phone", self.phone)
        require_utc_timestamp("created_at", self.created_at)
        require_optional_utc_timestamp("handled_at", self.handled_at)
        if (self.handled_by is None) != (self.handled_at is None):
            raise ValueError("handled_by and handled_at must be set together")

    @property
    def is_assigned(self) -> bool:
        return self.handled_by is not None

    def assigned_to(self, broker_id: UUID, at: datetime) -> "Lead":
        """
        Return a new Lead handled by `broker_id`.

        Enforces the at-most-once rule: a lead that already has a handling
        broker cannot be assigned again.
        """

        require_utc_timestamp("handled_at", at)
        if self.handled_by is not None:
            raise ValueError(f"Lead {self.lead_id} is already handled by {self.handled_by}")
        return replace(self, handled_by=broker_id, handled_at=at, status=LeadStatus.ASSIGNED)

    def with_update(self, update: "LeadUpdate") -> "Lead":
        """
        Apply a broker-dashboard update.

        Raises:
            LeadNotAssigned: a status change on a lead with no handling broker
        """

        if update.status is not None and self.handled_by is None:
            raise LeadNotAssigned(self.lead_id)
        changes: dict[str, Any] = {}
        if update.status is not None:
            changes["status"] = update.status
        if update.observations is not None:
            changes["observations"] = update.observations
        return replace(self, **changes) if changes else self


@dataclass(frozen=True, slots=True)
class NewLead:
    """Raw attributes accepted from the contact form."""

    name: str
    email: str
    phone: str
    location_interest: Optional[str] = None
    property_type: Optional[str] = None
    price_range: Optional[str] = None
    observations: Optional[str] = None

    def __post_init__(self) -> None:
        _require_text("name", self.name)
        _require_text("email", self.email)
        _require_text("phone", self.phone)


@dataclass(frozen=True, slots=True)
class LeadUpdate:
    """
    Explicit enumeration of the lead fields a generic update may change.

    There is deliberately no way to express handled_by/handled_at here.
    """

    status: Optional[LeadStatus] = None
    observations: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in FOLLOW_UP_STATUSES:
            raise ValueError(
                f"status cannot be set to '{self.status.value}' by an update; "
                f"allowed: {sorted(s.value for s in FOLLOW_UP_STATUSES)}"
            )

    @property
    def is_empty(self) -> bool:
        return self.status is None and self.observations is None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "LeadUpdate":
        """
        Build an update from an untyped payload.

        Raises:
            ProtectedFieldError: payload names an assignment-owned field
            ValueError: payload names a field that is not updatable
        """

        protected = ENGINE_OWNED_FIELDS.intersection(payload)
        if protected:
            raise ProtectedFieldError(protected)

        unknown = set(payload) - {"status", "observations"}
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        status = payload.get("status")
        return cls(
            status=LeadStatus(status) if status is not None else None,
            observations=payload.get("observations"),
        )


__all__ = [
    "ENGINE_OWNED_FIELDS",
    "FOLLOW_UP_STATUSES",
    "Lead",
    "LeadStatus",
    "LeadUpdate",
    "NewLead",
]
