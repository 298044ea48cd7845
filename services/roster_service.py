"""
Roster administration.

Operator-facing operations over the broker roster, used by the admin
drag-and-drop screen. Every error is surfaced to the caller.

- enroll_broker is strict: an already-active broker raises AlreadyEnrolled.
- ensure_enrolled is idempotent: used right after a user is promoted to broker.
- disable_broker only flips is_active; history is kept.
- reorder_roster applies a batch of positions atomically. Unknown entry ids are
  skipped, logged, and returned in ReorderResult.skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from domain.errors import AlreadyEnrolled, BrokerNotEligible, NotFound
from domain.profile import Profile, ProfileRole
from domain.roster import PositionChange, ReorderResult, RosterEntry
from repositories.store import RotationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RosterListing:
    """A roster entry joined with the broker's profile (if it still exists)."""

    entry: RosterEntry
    broker: Optional[Profile]


def list_roster_with_brokers(store: RotationStore) -> List[RosterListing]:
    entries = store.list_roster()
    profiles = {p.profile_id: p for p in store.list_profiles([e.broker_id for e in entries])}
    return [RosterListing(entry=e, broker=profiles.get(e.broker_id)) for e in entries]


def _require_broker_profile(store: RotationStore, broker_id: UUID) -> Profile:
    profile = store.get_profile(broker_id)
    if profile is None:
        raise NotFound("Profile", broker_id)
    if not profile.is_active:
        raise BrokerNotEligible(broker_id, "profile is inactive")
    if not profile.is_broker():
        raise BrokerNotEligible(broker_id, f"role is '{profile.role.value}', expected 'broker'")
    return profile


def enroll_broker(store: RotationStore, broker_id: UUID) -> RosterEntry:
    """
    Enroll (or reinstate) a broker at the end of the rotation.

    Raises:
        NotFound: no profile with this id
        BrokerNotEligible: profile is not an active broker
        AlreadyEnrolled: broker already has an active roster entry
    """

    _require_broker_profile(store, broker_id)
    entry = store.enroll_broker(broker_id)
    logger.info(
        "Broker %s enrolled at position %d (entry %d)",
        broker_id, entry.order_position, entry.entry_id,
    )
    return entry


def ensure_enrolled(store: RotationStore, broker_id: UUID) -> RosterEntry:
    """Idempotent enrollment: returns the existing active entry if there is one."""

    existing = store.get_roster_entry(broker_id)
    if existing is not None and existing.is_active:
        return existing
    try:
        return enroll_broker(store, broker_id)
    except AlreadyEnrolled:
        # A concurrent enrollment won; its entry is the one we want.
        entry = store.get_roster_entry(broker_id)
        if entry is None:
            raise
        return entry


def promote_to_broker(store: RotationStore, profile_id: UUID) -> Tuple[Profile, RosterEntry]:
    """
    Give a profile the broker role and make sure it is in the rotation.

    Eligibility is checked before the role is written, so a rejected
    promotion leaves the profile unchanged.

    Raises:
        NotFound: no profile with this id
        BrokerNotEligible: profile is inactive
    """

    profile = store.get_profile(profile_id)
    if profile is None:
        raise NotFound("Profile", profile_id)
    if not profile.is_active:
        raise BrokerNotEligible(profile_id, "profile is inactive")
    if profile.role != ProfileRole.BROKER:
        profile = store.set_profile_role(profile_id, ProfileRole.BROKER)
    entry = ensure_enrolled(store, profile_id)
    return profile, entry


def disable_broker(store: RotationStore, broker_id: UUID) -> RosterEntry:
    entry = store.disable_broker(broker_id)
    logger.info("Broker %s removed from rotation (entry %d)", broker_id, entry.entry_id)
    return entry


def reorder_roster(store: RotationStore, changes: Iterable[PositionChange]) -> ReorderResult:
    result = store.reorder_roster(list(changes))
    if result.skipped:
        logger.warning("Reorder skipped unknown roster entries: %s", result.skipped)
    logger.info("Roster reordered (%d entries updated)", len(result.applied))
    return result


__all__ = [
    "RosterListing",
    "disable_broker",
    "enroll_broker",
    "ensure_enrolled",
    "list_roster_with_brokers",
    "promote_to_broker",
    "reorder_roster",
]
