"""
Domain: round-robin broker selection.

This module contains only the pure selection rule and the outcome type of an
assignment. Locking and persistence live with the store implementations, which
call `select_next_entry` while holding the roster lock.

Selection rule:
1. Never-assigned priority: among active entries with last_assigned None,
   the smallest (order_position, entry_id). A newly enrolled broker gets a
   seed lead before anyone takes a repeat turn.
2. Oldest-assigned fallback: otherwise the active entry with the smallest
   last_assigned, ties broken by (order_position, entry_id).
3. No active entries: no selection.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from .lead import Lead
from .ledger import DistributionLedgerEntry
from .roster import RosterEntry


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    NO_ELIGIBLE_BROKER = "no_eligible_broker"
    ALREADY_ASSIGNED = "already_assigned"


def select_next_entry(entries: Iterable[RosterEntry]) -> Optional[RosterEntry]:
    active = [entry for entry in entries if entry.is_active]
    if not active:
        return None

    never_assigned = [entry for entry in active if entry.never_assigned]
    if never_assigned:
        return min(never_assigned, key=RosterEntry.sort_key)

    return min(
        active,
        key=lambda entry: (entry.last_assigned, entry.order_position, entry.entry_id),
    )


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """
    Outcome of one assignment attempt.

    status: ASSIGNED, NO_ELIGIBLE_BROKER or ALREADY_ASSIGNED
    lead: the lead as it stands after the attempt
    ledger_entry: the audit record written (ASSIGNED only)
    """

    status: AssignmentStatus
    lead_id: UUID
    lead: Optional[Lead] = None
    ledger_entry: Optional[DistributionLedgerEntry] = None

    @property
    def assigned(self) -> bool:
        return self.status == AssignmentStatus.ASSIGNED

    @property
    def broker_id(self) -> Optional[UUID]:
        return self.lead.handled_by if self.lead is not None else None


__all__ = [
    "AssignmentResult",
    "AssignmentStatus",
    "select_next_entry",
]
