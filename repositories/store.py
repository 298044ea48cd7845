"""
Rotation store protocol.

The persistence boundary for the broker rotation. Every operation that mutates
rotation state is a single atomic unit inside the store; callers never perform
read-then-write sequences against roster or lead rows themselves.

Lock discipline shared by all implementations:
- Roster rows are locked before the lead row, never the other way round.
- Every lock wait is bounded; exceeding it raises ContentionTimeout and the
  unit is rolled back.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, runtime_checkable
from uuid import UUID

from domain.assignment import AssignmentResult
from domain.lead import Lead, LeadStatus, LeadUpdate, NewLead
from domain.ledger import DistributionLedgerEntry
from domain.profile import Profile, ProfileRole
from domain.roster import PositionChange, ReorderResult, RosterEntry


@runtime_checkable
class RotationStore(Protocol):
    # Leads
    def create_lead(self, new_lead: NewLead) -> Lead: ...

    def get_lead(self, lead_id: UUID) -> Optional[Lead]: ...

    def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        handled_by: Optional[UUID] = None,
    ) -> List[Lead]: ...

    def update_lead(self, lead_id: UUID, update: LeadUpdate) -> Lead:
        """
        Apply a broker-dashboard update under the lead's lock.

        Raises:
            NotFound: unknown lead id
            LeadNotAssigned: status change on a lead with no handling broker
        """
        ...

    # Assignment engine
    def select_and_assign(self, lead_id: UUID) -> AssignmentResult:
        """
        Pick the next broker and assign the lead in one atomic unit.

        Raises:
            NotFound: unknown lead id
            ContentionTimeout: a lock could not be acquired in time
        """
        ...

    # Roster
    def list_roster(self) -> List[RosterEntry]: ...

    def get_roster_entry(self, broker_id: UUID) -> Optional[RosterEntry]: ...

    def enroll_broker(self, broker_id: UUID) -> RosterEntry: ...

    def disable_broker(self, broker_id: UUID) -> RosterEntry: ...

    def reorder_roster(self, changes: Sequence[PositionChange]) -> ReorderResult: ...

    # Ledger
    def list_ledger(
        self,
        lead_id: Optional[UUID] = None,
        broker_id: Optional[UUID] = None,
    ) -> List[DistributionLedgerEntry]: ...

    # Profiles (collaborator)
    def get_profile(self, profile_id: UUID) -> Optional[Profile]: ...

    def list_profiles(self, profile_ids: Sequence[UUID]) -> List[Profile]: ...

    def set_profile_role(self, profile_id: UUID, role: ProfileRole) -> Profile: ...


__all__ = ["RotationStore"]
