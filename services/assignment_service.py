"""
Assignment engine.

Decides which broker receives a lead. The decision and all of its writes
(lead handled_by/handled_at/status, roster last_assigned/total_assigned, ledger
entry) happen inside the store's atomic `select_and_assign`; this module adds
the outcome logging and the pending-lead sweep.

Outcomes:
- ASSIGNED: lead handed to the next broker in rotation
- NO_ELIGIBLE_BROKER: no active roster entries, lead stays pending
- ALREADY_ASSIGNED: another call won the race, nothing written

Raises:
- NotFound for an unknown lead id
- ContentionTimeout when locks could not be taken in time (retryable)

The engine never retries on its own; callers decide.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List
from uuid import UUID

from domain.assignment import AssignmentResult, AssignmentStatus
from domain.errors import ContentionTimeout
from domain.lead import LeadStatus
from repositories.store import RotationStore

logger = logging.getLogger(__name__)


def assign_lead(store: RotationStore, lead_id: UUID) -> AssignmentResult:
    """
    Assign a lead to the next broker in the rotation.

    Example:
        result = assign_lead(store, lead.lead_id)
        if result.assigned:
            print(f"Lead handled by {result.broker_id}")
    """

    result = store.select_and_assign(lead_id)

    if result.status == AssignmentStatus.ASSIGNED:
        logger.info(
            "Lead %s assigned to broker %s (position %s)",
            lead_id,
            result.broker_id,
            result.ledger_entry.order_position if result.ledger_entry else None,
        )
    elif result.status == AssignmentStatus.NO_ELIGIBLE_BROKER:
        logger.warning("No active brokers in rotation; lead %s stays pending", lead_id)
    else:
        logger.info("Lead %s already handled by %s", lead_id, result.broker_id)

    return result


@dataclass
class PendingSweepResult:
    """Counts from one pass over pending leads."""

    examined: int = 0
    assigned: List[UUID] = field(default_factory=list)
    skipped: List[UUID] = field(default_factory=list)
    contended: List[UUID] = field(default_factory=list)
    no_eligible_broker: bool = False


def assign_pending_leads(store: RotationStore) -> PendingSweepResult:
    """
    Retry assignment for every lead still pending without a broker.

    Stops at the first NO_ELIGIBLE_BROKER outcome since the remaining leads
    would get the same answer. Contended leads are reported and left for the
    next sweep.
    """

    sweep = PendingSweepResult()
    pending = [
        lead for lead in store.list_leads(status=LeadStatus.PENDING)
        if not lead.is_assigned
    ]
    # Oldest leads first so they are served in arrival order.
    pending.sort(key=lambda lead: lead.created_at)

    for lead in pending:
        sweep.examined += 1
        try:
            result = assign_lead(store, lead.lead_id)
        except ContentionTimeout:
            logger.warning("Lead %s contended during sweep; will retry later", lead.lead_id)
            sweep.contended.append(lead.lead_id)
            continue

        if result.status == AssignmentStatus.ASSIGNED:
            sweep.assigned.append(lead.lead_id)
        elif result.status == AssignmentStatus.ALREADY_ASSIGNED:
            sweep.skipped.append(lead.lead_id)
        else:
            sweep.no_eligible_broker = True
            break

    return sweep


__all__ = [
    "PendingSweepResult",
    "assign_lead",
    "assign_pending_leads",
]
