"""
In-process rotation store.

Implements RotationStore with plain dictionaries guarded by threading locks.
Used for local runs (ROTATION_STORE=memory) and by the test-suite.

Locking model (mirrors the row locks taken by the Postgres functions):
- `_roster_lock` stands for the set of roster rows. Assignment and every roster
  administration operation hold it for their whole unit of work.
- Each lead has its own lock, always acquired after the roster lock.
- Both are acquired with the configured timeout; on expiry ContentionTimeout is
  raised before anything has been written.
- Each unit computes all new values first and publishes them last, so a
  failure part-way leaves no partial writes.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Sequence
from uuid import UUID, uuid4

from domain.assignment import AssignmentResult, AssignmentStatus, select_next_entry
from domain.errors import AlreadyEnrolled, ContentionTimeout, NotFound
from domain.lead import Lead, LeadStatus, LeadUpdate, NewLead
from domain.ledger import DistributionLedgerEntry
from domain.profile import Profile, ProfileRole
from domain.roster import (
    PositionChange,
    ReorderResult,
    RosterEntry,
    next_order_position,
    ordered,
)
from domain.time import utc_now

logger = logging.getLogger(__name__)


class InMemoryRotationStore:
    def __init__(
        self,
        lock_timeout_seconds: float = 3.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._lock_timeout = lock_timeout_seconds
        self._clock = clock

        self._roster_lock = threading.Lock()
        self._registry_lock = threading.Lock()

        self._leads: Dict[UUID, Lead] = {}
        self._lead_locks: Dict[UUID, threading.Lock] = {}
        self._roster: Dict[int, RosterEntry] = {}
        self._ledger: List[DistributionLedgerEntry] = []
        self._profiles: Dict[UUID, Profile] = {}

        self._roster_ids = itertools.count(1)
        self._ledger_ids = itertools.count(1)

    @contextmanager
    def _locked(self, lock: threading.Lock, operation: str) -> Iterator[None]:
        if not lock.acquire(timeout=self._lock_timeout):
            raise ContentionTimeout(operation, int(self._lock_timeout * 1000))
        try:
            yield
        finally:
            lock.release()

    def _lead_lock(self, lead_id: UUID) -> threading.Lock:
        with self._registry_lock:
            lock = self._lead_locks.get(lead_id)
        if lock is None:
            raise NotFound("Lead", lead_id)
        return lock

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def create_lead(self, new_lead: NewLead) -> Lead:
        lead = Lead(
            lead_id=uuid4(),
            name=new_lead.name,
            email=new_lead.email,
            phone=new_lead.phone,
            created_at=self._clock(),
            status=LeadStatus.PENDING,
            location_interest=new_lead.location_interest,
            property_type=new_lead.property_type,
            price_range=new_lead.price_range,
            observations=new_lead.observations,
        )
        with self._registry_lock:
            self._leads[lead.lead_id] = lead
            self._lead_locks[lead.lead_id] = threading.Lock()
        return lead

    def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        with self._registry_lock:
            return self._leads.get(lead_id)

    def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        handled_by: Optional[UUID] = None,
    ) -> List[Lead]:
        with self._registry_lock:
            leads = list(self._leads.values())
        if status is not None:
            leads = [lead for lead in leads if lead.status == status]
        if handled_by is not None:
            leads = [lead for lead in leads if lead.handled_by == handled_by]
        return sorted(leads, key=lambda lead: lead.created_at, reverse=True)

    def update_lead(self, lead_id: UUID, update: LeadUpdate) -> Lead:
        with self._locked(self._lead_lock(lead_id), "update_lead"):
            with self._registry_lock:
                updated = self._leads[lead_id].with_update(update)
                self._leads[lead_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Assignment engine
    # ------------------------------------------------------------------

    def select_and_assign(self, lead_id: UUID) -> AssignmentResult:
        lead_lock = self._lead_lock(lead_id)

        with self._locked(self._roster_lock, "select_and_assign"):
            chosen = select_next_entry(self._roster.values())
            if chosen is None:
                return AssignmentResult(
                    status=AssignmentStatus.NO_ELIGIBLE_BROKER,
                    lead_id=lead_id,
                    lead=self.get_lead(lead_id),
                )

            with self._locked(lead_lock, "select_and_assign"):
                lead = self.get_lead(lead_id)
                if lead.is_assigned:
                    return AssignmentResult(
                        status=AssignmentStatus.ALREADY_ASSIGNED,
                        lead_id=lead_id,
                        lead=lead,
                    )

                now = self._clock()
                assigned_lead = lead.assigned_to(chosen.broker_id, now)
                updated_entry = chosen.record_assignment(now)
                ledger_entry = DistributionLedgerEntry(
                    entry_id=next(self._ledger_ids),
                    lead_id=lead_id,
                    broker_id=chosen.broker_id,
                    order_position=chosen.order_position,
                    assigned_at=now,
                )

                with self._registry_lock:
                    self._leads[lead_id] = assigned_lead
                self._roster[chosen.entry_id] = updated_entry
                self._ledger.append(ledger_entry)

        return AssignmentResult(
            status=AssignmentStatus.ASSIGNED,
            lead_id=lead_id,
            lead=assigned_lead,
            ledger_entry=ledger_entry,
        )

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def _entry_for_broker(self, broker_id: UUID) -> Optional[RosterEntry]:
        for entry in self._roster.values():
            if entry.broker_id == broker_id:
                return entry
        return None

    def list_roster(self) -> List[RosterEntry]:
        with self._locked(self._roster_lock, "list_roster"):
            return ordered(self._roster.values())

    def get_roster_entry(self, broker_id: UUID) -> Optional[RosterEntry]:
        with self._locked(self._roster_lock, "get_roster_entry"):
            return self._entry_for_broker(broker_id)

    def enroll_broker(self, broker_id: UUID) -> RosterEntry:
        with self._locked(self._roster_lock, "enroll_broker"):
            existing = self._entry_for_broker(broker_id)
            if existing is not None and existing.is_active:
                raise AlreadyEnrolled(broker_id, existing.entry_id)

            now = self._clock()
            position = next_order_position(list(self._roster.values()))
            if existing is not None:
                entry = existing.reactivated(position, now)
            else:
                entry = RosterEntry(
                    entry_id=next(self._roster_ids),
                    broker_id=broker_id,
                    order_position=position,
                    created_at=now,
                    updated_at=now,
                )
            self._roster[entry.entry_id] = entry
            return entry

    def disable_broker(self, broker_id: UUID) -> RosterEntry:
        with self._locked(self._roster_lock, "disable_broker"):
            existing = self._entry_for_broker(broker_id)
            if existing is None:
                raise NotFound("Roster entry for broker", broker_id)
            entry = existing.deactivated(self._clock())
            self._roster[entry.entry_id] = entry
            return entry

    def reorder_roster(self, changes: Sequence[PositionChange]) -> ReorderResult:
        with self._locked(self._roster_lock, "reorder_roster"):
            now = self._clock()
            staged: Dict[int, RosterEntry] = {}
            applied: List[int] = []
            skipped: List[int] = []
            for change in changes:
                current = staged.get(change.entry_id) or self._roster.get(change.entry_id)
                if current is None:
                    skipped.append(change.entry_id)
                    continue
                staged[change.entry_id] = current.moved_to(change.order_position, now)
                applied.append(change.entry_id)
            self._roster.update(staged)
        return ReorderResult(applied=applied, skipped=skipped)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def list_ledger(
        self,
        lead_id: Optional[UUID] = None,
        broker_id: Optional[UUID] = None,
    ) -> List[DistributionLedgerEntry]:
        with self._locked(self._roster_lock, "list_ledger"):
            entries = list(self._ledger)
        if lead_id is not None:
            entries = [e for e in entries if e.lead_id == lead_id]
        if broker_id is not None:
            entries = [e for e in entries if e.broker_id == broker_id]
        return entries

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def add_profile(self, profile: Profile) -> Profile:
        """Seed a profile (profiles are created by the auth side in production)."""
        with self._registry_lock:
            self._profiles[profile.profile_id] = profile
        return profile

    def get_profile(self, profile_id: UUID) -> Optional[Profile]:
        with self._registry_lock:
            return self._profiles.get(profile_id)

    def list_profiles(self, profile_ids: Sequence[UUID]) -> List[Profile]:
        with self._registry_lock:
            return [self._profiles[pid] for pid in profile_ids if pid in self._profiles]

    def set_profile_role(self, profile_id: UUID, role: ProfileRole) -> Profile:
        with self._registry_lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                raise NotFound("Profile", profile_id)
            updated = replace(profile, role=role, updated_at=self._clock())
            self._profiles[profile_id] = updated
        logger.info("Profile %s role set to %s", profile_id, role.value)
        return updated


__all__ = ["InMemoryRotationStore"]
