"""
Supabase rotation store (persistence).

Reads go through the PostgREST table API. Every mutation of rotation state runs
as a Postgres function (see sql/001_broker_rotation.sql) called through
`supabase.rpc(...)`, so that row locks, the lock timeout and the
all-or-nothing write happen inside one database transaction:

- assign_lead_round_robin: locks active roster rows, then the lead row
- enroll_broker / disable_broker / reorder_broker_order: lock roster rows

Each function returns a JSON object with an "outcome" key. A lock timeout inside
a function is reported as outcome "contention_timeout" and mapped to
ContentionTimeout here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError

from domain.assignment import AssignmentResult, AssignmentStatus
from domain.errors import AlreadyEnrolled, ContentionTimeout, LeadNotAssigned, NotFound
from domain.lead import Lead, LeadStatus, LeadUpdate, NewLead
from domain.ledger import DistributionLedgerEntry
from domain.profile import Profile, ProfileRole
from domain.roster import PositionChange, ReorderResult, RosterEntry
from domain.time import parse_optional_utc_datetime, parse_utc_datetime, to_iso_utc, utc_now

logger = logging.getLogger(__name__)

# Supabase table names.
# Keep these aligned with sql/001_broker_rotation.sql.
_LEADS_TABLE: str = "leads"
_ROSTER_TABLE: str = "broker_order"
_LEDGER_TABLE: str = "lead_distribution_log"
_PROFILES_TABLE: str = "profiles"

# Postgres SQLSTATE for lock_not_available (lock_timeout / NOWAIT).
_LOCK_NOT_AVAILABLE = "55P03"


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    handled_by = row.get("handled_by")
    return Lead(
        lead_id=UUID(str(row["id"])),
        name=str(row["name"]),
        email=str(row["email"]),
        phone=str(row["phone"]),
        created_at=parse_utc_datetime(row["created_at"]),
        status=LeadStatus(str(row.get("status") or LeadStatus.PENDING.value)),
        location_interest=row.get("location_interest"),
        property_type=row.get("property_type"),
        price_range=row.get("price_range"),
        observations=row.get("observations"),
        handled_by=UUID(str(handled_by)) if handled_by else None,
        handled_at=parse_optional_utc_datetime(row.get("handled_at")),
    )


def _row_to_entry(row: Mapping[str, Any]) -> RosterEntry:
    """Convert a Supabase broker_order row into a RosterEntry."""

    return RosterEntry(
        entry_id=int(row["id"]),
        broker_id=UUID(str(row["broker_id"])),
        order_position=int(row["order_position"]),
        is_active=bool(row.get("is_active", True)),
        last_assigned=parse_optional_utc_datetime(row.get("last_assigned")),
        total_assigned=int(row.get("total_leads_assigned") or 0),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def _row_to_ledger(row: Mapping[str, Any]) -> DistributionLedgerEntry:
    return DistributionLedgerEntry(
        entry_id=int(row["id"]),
        lead_id=UUID(str(row["lead_id"])),
        broker_id=UUID(str(row["broker_id"])),
        order_position=int(row["order_position"]),
        assigned_at=parse_utc_datetime(row["assigned_at"]),
    )


def _row_to_profile(row: Mapping[str, Any]) -> Profile:
    return Profile(
        profile_id=UUID(str(row["id"])),
        role=ProfileRole(str(row.get("role") or ProfileRole.CLIENT.value)),
        full_name=row.get("full_name"),
        phone=row.get("phone"),
        is_active=bool(row.get("is_active", True)),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def _rows(response: Any, action: str) -> List[Mapping[str, Any]]:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


class SupabaseRotationStore:
    def __init__(self, client: Any, lock_timeout_ms: int = 3000):
        self._client = client
        self._lock_timeout_ms = lock_timeout_ms

    def _execute(self, query: Any, action: str) -> List[Mapping[str, Any]]:
        try:
            response = query.execute()
        except APIError as e:
            if getattr(e, "code", None) == _LOCK_NOT_AVAILABLE:
                raise ContentionTimeout(action, self._lock_timeout_ms) from e
            raise RuntimeError(f"Failed to {action}: {e}") from e
        return _rows(response, action)

    def _rpc(self, function: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a rotation Postgres function and return its JSON result.

        supabase-py raises APIError for some JSON payloads returned by a
        function even when the call succeeded, so an APIError carrying an
        "outcome" is treated as the function's result.
        """

        params = {**params, "p_lock_timeout_ms": self._lock_timeout_ms}
        try:
            response = self._client.rpc(function, params).execute()
            error = getattr(response, "error", None)
            if error:
                raise RuntimeError(f"Failed to call {function}: {error}")
            result = response.data or {}
        except APIError as e:
            try:
                result = e.json() if callable(getattr(e, "json", None)) else {}
            except (TypeError, ValueError):
                result = {}
            if not isinstance(result, dict) or "outcome" not in result:
                if getattr(e, "code", None) == _LOCK_NOT_AVAILABLE:
                    raise ContentionTimeout(function, self._lock_timeout_ms) from e
                raise RuntimeError(f"Failed to call {function}: {e}") from e

        if result.get("outcome") == "contention_timeout":
            raise ContentionTimeout(function, self._lock_timeout_ms)
        return result

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def create_lead(self, new_lead: NewLead) -> Lead:
        payload: dict[str, Any] = {
            "name": new_lead.name,
            "email": new_lead.email,
            "phone": new_lead.phone,
            "location_interest": new_lead.location_interest,
            "property_type": new_lead.property_type,
            "price_range": new_lead.price_range,
            "observations": new_lead.observations,
            "status": LeadStatus.PENDING.value,
            "created_at": to_iso_utc(utc_now(), name="created_at"),
        }
        rows = self._execute(self._client.table(_LEADS_TABLE).insert(payload), "insert lead")
        if not rows:
            raise RuntimeError("Failed to insert lead: no row returned")
        return _row_to_lead(rows[0])

    def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        query = self._client.table(_LEADS_TABLE).select("*").eq("id", str(lead_id)).limit(1)
        rows = self._execute(query, "fetch lead")
        if not rows:
            return None
        return _row_to_lead(rows[0])

    def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        handled_by: Optional[UUID] = None,
    ) -> List[Lead]:
        query = self._client.table(_LEADS_TABLE).select("*")
        if status is not None:
            query = query.eq("status", status.value)
        if handled_by is not None:
            query = query.eq("handled_by", str(handled_by))
        query = query.order("created_at", desc=True)
        return [_row_to_lead(row) for row in self._execute(query, "list leads")]

    def update_lead(self, lead_id: UUID, update: LeadUpdate) -> Lead:
        # Only the explicitly enumerated fields are ever sent.
        payload: dict[str, Any] = {}
        if update.status is not None:
            payload["status"] = update.status.value
        if update.observations is not None:
            payload["observations"] = update.observations

        if not payload:
            lead = self.get_lead(lead_id)
            if lead is None:
                raise NotFound("Lead", lead_id)
            return lead

        query = self._client.table(_LEADS_TABLE).update(payload).eq("id", str(lead_id))
        if update.status is not None:
            # Status leaves 'pending' only through assign_lead_round_robin.
            query = query.not_.is_("handled_by", "null")
        rows = self._execute(query, "update lead")
        if not rows:
            if update.status is not None and self.get_lead(lead_id) is not None:
                raise LeadNotAssigned(lead_id)
            raise NotFound("Lead", lead_id)
        return _row_to_lead(rows[0])

    # ------------------------------------------------------------------
    # Assignment engine
    # ------------------------------------------------------------------

    def select_and_assign(self, lead_id: UUID) -> AssignmentResult:
        result = self._rpc("assign_lead_round_robin", {"p_lead_id": str(lead_id)})
        outcome = result.get("outcome")

        if outcome == "lead_not_found":
            raise NotFound("Lead", lead_id)

        lead = _row_to_lead(result["lead"]) if result.get("lead") else None

        if outcome == "no_eligible_broker":
            return AssignmentResult(AssignmentStatus.NO_ELIGIBLE_BROKER, lead_id, lead)
        if outcome == "already_assigned":
            return AssignmentResult(AssignmentStatus.ALREADY_ASSIGNED, lead_id, lead)
        if outcome == "assigned":
            return AssignmentResult(
                status=AssignmentStatus.ASSIGNED,
                lead_id=lead_id,
                lead=lead,
                ledger_entry=_row_to_ledger(result["ledger"]),
            )

        raise RuntimeError(f"Failed to assign lead: unexpected outcome {outcome!r}")

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def list_roster(self) -> List[RosterEntry]:
        query = (
            self._client.table(_ROSTER_TABLE)
            .select("*")
            .order("order_position")
            .order("id")
        )
        return [_row_to_entry(row) for row in self._execute(query, "list broker order")]

    def get_roster_entry(self, broker_id: UUID) -> Optional[RosterEntry]:
        query = (
            self._client.table(_ROSTER_TABLE)
            .select("*")
            .eq("broker_id", str(broker_id))
            .limit(1)
        )
        rows = self._execute(query, "fetch broker order entry")
        if not rows:
            return None
        return _row_to_entry(rows[0])

    def enroll_broker(self, broker_id: UUID) -> RosterEntry:
        result = self._rpc("enroll_broker", {"p_broker_id": str(broker_id)})
        entry = _row_to_entry(result["entry"])
        if result.get("outcome") == "already_enrolled":
            raise AlreadyEnrolled(broker_id, entry.entry_id)
        return entry

    def disable_broker(self, broker_id: UUID) -> RosterEntry:
        result = self._rpc("disable_broker", {"p_broker_id": str(broker_id)})
        if result.get("outcome") == "not_found":
            raise NotFound("Roster entry for broker", broker_id)
        return _row_to_entry(result["entry"])

    def reorder_roster(self, changes: Sequence[PositionChange]) -> ReorderResult:
        orders = [{"id": c.entry_id, "order_position": c.order_position} for c in changes]
        result = self._rpc("reorder_broker_order", {"p_orders": orders})
        return ReorderResult(
            applied=[int(i) for i in result.get("applied") or []],
            skipped=[int(i) for i in result.get("skipped") or []],
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def list_ledger(
        self,
        lead_id: Optional[UUID] = None,
        broker_id: Optional[UUID] = None,
    ) -> List[DistributionLedgerEntry]:
        query = self._client.table(_LEDGER_TABLE).select("*")
        if lead_id is not None:
            query = query.eq("lead_id", str(lead_id))
        if broker_id is not None:
            query = query.eq("broker_id", str(broker_id))
        query = query.order("id")
        return [_row_to_ledger(row) for row in self._execute(query, "list distribution log")]

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, profile_id: UUID) -> Optional[Profile]:
        query = self._client.table(_PROFILES_TABLE).select("*").eq("id", str(profile_id)).limit(1)
        rows = self._execute(query, "fetch profile")
        if not rows:
            return None
        return _row_to_profile(rows[0])

    def list_profiles(self, profile_ids: Sequence[UUID]) -> List[Profile]:
        if not profile_ids:
            return []
        query = (
            self._client.table(_PROFILES_TABLE)
            .select("*")
            .in_("id", [str(pid) for pid in profile_ids])
        )
        return [_row_to_profile(row) for row in self._execute(query, "list profiles")]

    def set_profile_role(self, profile_id: UUID, role: ProfileRole) -> Profile:
        payload = {
            "role": role.value,
            "updated_at": to_iso_utc(utc_now(), name="updated_at"),
        }
        query = self._client.table(_PROFILES_TABLE).update(payload).eq("id", str(profile_id))
        rows = self._execute(query, "update profile role")
        if not rows:
            raise NotFound("Profile", profile_id)
        logger.info("Profile %s role set to %s", profile_id, role.value)
        return _row_to_profile(rows[0])


__all__ = ["SupabaseRotationStore"]
