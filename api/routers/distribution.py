"""
Distribution API Endpoints.

Fairness diagnostics over the distribution ledger, the background assignment
error channel, and broker promotion.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_dispatcher, get_store
from api.errors import rotation_http_error
from api.models import (
    AssignmentFailureResponse,
    BrokerProfileResponse,
    DistributionSummaryResponse,
    ErrorResponse,
    PromotionResponse,
    RosterEntryResponse,
)
from domain.errors import RotationError
from repositories.store import RotationStore
from services.assignment_dispatcher import AssignmentDispatcher
from services.ledger_service import distribution_summary
from services.roster_service import promote_to_broker

router = APIRouter()


@router.get(
    "/distribution/summary",
    response_model=DistributionSummaryResponse,
    summary="Distribution Summary",
    description="Per-broker assignment counts and the spread across active brokers."
)
def get_distribution_summary(store: RotationStore = Depends(get_store)):
    """
    Fairness check for the rotation.

    `spread` is the difference between the most and least served active
    brokers (by ledger entries). Under strict round robin on a warmed roster
    it stays at 0 or 1.
    """
    try:
        return DistributionSummaryResponse.from_domain(distribution_summary(store))
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build distribution summary: {str(e)}"
        )


@router.get(
    "/distribution/failures",
    response_model=List[AssignmentFailureResponse],
    summary="Background Assignment Failures",
    description="Leads whose background assignment failed and that were left pending."
)
def get_assignment_failures(dispatcher: AssignmentDispatcher = Depends(get_dispatcher)):
    return [AssignmentFailureResponse.from_domain(f) for f in dispatcher.failures]


@router.post(
    "/admin/promote/{user_id}",
    response_model=PromotionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Promote To Broker",
    description="Give a user the broker role and enroll them in the rotation (idempotent)."
)
def promote_user_to_broker(user_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        profile, entry = promote_to_broker(store, user_id)
        return PromotionResponse(
            profile=BrokerProfileResponse.from_domain(profile),
            roster_entry=RosterEntryResponse.from_domain(entry, profile),
        )
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to promote user to broker: {str(e)}"
        )
