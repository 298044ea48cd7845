"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from domain.lead import Lead
from domain.ledger import BrokerDistribution, DistributionLedgerEntry, DistributionSummary
from domain.profile import Profile
from domain.roster import RosterEntry
from services.assignment_dispatcher import AssignmentFailure


# ============================================================================
# Lead Models
# ============================================================================

class LeadCreateRequest(BaseModel):
    """Contact-form submission."""
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    location_interest: Optional[str] = Field(None, max_length=255)
    property_type: Optional[str] = Field(None, max_length=100)
    price_range: Optional[str] = Field(None, max_length=100)
    observations: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Maria Souza",
                "email": "maria@example.com",
                "phone": "+55 11 99999-0000",
                "location_interest": "Centro",
                "property_type": "apartment",
                "price_range": "300k-500k",
                "observations": "Prefers contact after 6pm"
            }
        }


class LeadResponse(BaseModel):
    """Single lead in API response."""
    lead_id: UUID
    name: str
    email: str
    phone: str
    status: str
    location_interest: Optional[str] = None
    property_type: Optional[str] = None
    price_range: Optional[str] = None
    observations: Optional[str] = None
    handled_by: Optional[UUID] = None
    handled_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, lead: Lead) -> "LeadResponse":
        return cls(
            lead_id=lead.lead_id,
            name=lead.name,
            email=lead.email,
            phone=lead.phone,
            status=lead.status.value,
            location_interest=lead.location_interest,
            property_type=lead.property_type,
            price_range=lead.price_range,
            observations=lead.observations,
            handled_by=lead.handled_by,
            handled_at=lead.handled_at,
            created_at=lead.created_at,
        )


class LeadListResponse(BaseModel):
    items: List[LeadResponse]
    total_count: int


# ============================================================================
# Distribution Ledger Models
# ============================================================================

class LedgerEntryResponse(BaseModel):
    """One assignment decision from the distribution ledger."""
    entry_id: int
    lead_id: UUID
    broker_id: UUID
    order_position: int
    assigned_at: datetime

    @classmethod
    def from_domain(cls, entry: DistributionLedgerEntry) -> "LedgerEntryResponse":
        return cls(
            entry_id=entry.entry_id,
            lead_id=entry.lead_id,
            broker_id=entry.broker_id,
            order_position=entry.order_position,
            assigned_at=entry.assigned_at,
        )


class AssignmentResponse(BaseModel):
    """Response after an explicit assignment."""
    outcome: str
    lead: Optional[LeadResponse] = None
    ledger_entry: Optional[LedgerEntryResponse] = None

    class Config:
        json_schema_extra = {
            "example": {
                "outcome": "assigned",
                "lead": {
                    "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                    "status": "assigned",
                    "handled_by": "123e4567-e89b-12d3-a456-426614174010"
                },
                "ledger_entry": {
                    "entry_id": 42,
                    "order_position": 3,
                    "assigned_at": "2025-01-01T12:00:00Z"
                }
            }
        }


class PendingSweepResponse(BaseModel):
    examined: int
    assigned: List[UUID]
    skipped: List[UUID]
    contended: List[UUID]
    no_eligible_broker: bool


class BrokerDistributionResponse(BaseModel):
    broker_id: UUID
    is_active: bool
    order_position: int
    total_assigned: int
    ledger_count: int
    last_assigned: Optional[datetime] = None

    @classmethod
    def from_domain(cls, item: BrokerDistribution) -> "BrokerDistributionResponse":
        return cls(
            broker_id=item.broker_id,
            is_active=item.is_active,
            order_position=item.order_position,
            total_assigned=item.total_assigned,
            ledger_count=item.ledger_count,
            last_assigned=item.last_assigned,
        )


class DistributionSummaryResponse(BaseModel):
    brokers: List[BrokerDistributionResponse]
    total_assignments: int
    spread: int

    @classmethod
    def from_domain(cls, summary: DistributionSummary) -> "DistributionSummaryResponse":
        return cls(
            brokers=[BrokerDistributionResponse.from_domain(b) for b in summary.brokers],
            total_assignments=summary.total_assignments,
            spread=summary.spread,
        )


class AssignmentFailureResponse(BaseModel):
    lead_id: UUID
    error: str
    attempts: int
    retryable: bool
    failed_at: datetime

    @classmethod
    def from_domain(cls, failure: AssignmentFailure) -> "AssignmentFailureResponse":
        return cls(
            lead_id=failure.lead_id,
            error=failure.error,
            attempts=failure.attempts,
            retryable=failure.retryable,
            failed_at=failure.failed_at,
        )


# ============================================================================
# Broker Order (Roster) Models
# ============================================================================

class BrokerProfileResponse(BaseModel):
    profile_id: UUID
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool

    @classmethod
    def from_domain(cls, profile: Profile) -> "BrokerProfileResponse":
        return cls(
            profile_id=profile.profile_id,
            full_name=profile.full_name,
            phone=profile.phone,
            role=profile.role.value,
            is_active=profile.is_active,
        )


class RosterEntryResponse(BaseModel):
    """Roster entry, optionally joined with the broker profile."""
    id: int
    broker_id: UUID
    order_position: int
    is_active: bool
    last_assigned: Optional[datetime] = None
    total_assigned: int
    broker: Optional[BrokerProfileResponse] = None

    @classmethod
    def from_domain(
        cls, entry: RosterEntry, broker: Optional[Profile] = None
    ) -> "RosterEntryResponse":
        return cls(
            id=entry.entry_id,
            broker_id=entry.broker_id,
            order_position=entry.order_position,
            is_active=entry.is_active,
            last_assigned=entry.last_assigned,
            total_assigned=entry.total_assigned,
            broker=BrokerProfileResponse.from_domain(broker) if broker else None,
        )


class OrderPosition(BaseModel):
    """One item of the drag-and-drop reorder payload."""
    id: int
    order_position: int = Field(..., alias="orderPosition")

    class Config:
        populate_by_name = True


class ReorderRequest(BaseModel):
    orders: List[OrderPosition]

    class Config:
        json_schema_extra = {
            "example": {
                "orders": [
                    {"id": 5, "orderPosition": 1},
                    {"id": 3, "orderPosition": 2}
                ]
            }
        }


class ReorderResponse(BaseModel):
    success: bool
    applied: List[int]
    skipped: List[int]


class PromotionResponse(BaseModel):
    profile: BrokerProfileResponse
    roster_entry: RosterEntryResponse


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Conflict",
                "detail": "Broker 123e4567-e89b-12d3-a456-426614174010 is already enrolled",
                "status_code": 409
            }
        }
