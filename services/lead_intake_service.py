"""
Lead intake.

Persists a contact-form submission as a pending lead and schedules its
assignment. Capturing the lead is the only thing that can fail the request;
anything that goes wrong with assignment is logged and the lead stays pending.
"""

from __future__ import annotations

import logging
from typing import Callable
from uuid import UUID

from domain.lead import Lead, NewLead
from repositories.store import RotationStore

logger = logging.getLogger(__name__)

ScheduleAssignment = Callable[[UUID], object]


def submit_lead(
    store: RotationStore,
    new_lead: NewLead,
    schedule_assignment: ScheduleAssignment,
) -> Lead:
    """
    Create a pending lead and hand it to the assignment dispatcher.

    Args:
        store: rotation store
        new_lead: validated contact-form attributes
        schedule_assignment: enqueues assignment of a lead id (a background
            task in the API, `AssignmentDispatcher.run` when called inline)

    Returns:
        The lead as created (status PENDING). Assignment happens afterwards.
    """

    lead = store.create_lead(new_lead)
    logger.info("Captured lead %s", lead.lead_id)

    try:
        schedule_assignment(lead.lead_id)
    except Exception:
        logger.exception("Failed to schedule assignment for lead %s", lead.lead_id)

    return lead


__all__ = ["ScheduleAssignment", "submit_lead"]
