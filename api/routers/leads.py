"""
Leads API Endpoints.

Lead capture (contact form), lead reads, restricted updates from the broker
dashboard, and explicit assignment.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query

from api.dependencies import get_dispatcher, get_store
from api.errors import rotation_http_error
from api.models import (
    AssignmentResponse,
    ErrorResponse,
    LeadCreateRequest,
    LeadListResponse,
    LeadResponse,
    LedgerEntryResponse,
    PendingSweepResponse,
)
from domain.assignment import AssignmentStatus
from domain.errors import RotationError
from domain.lead import LeadStatus, LeadUpdate, NewLead
from repositories.store import RotationStore
from services.assignment_dispatcher import AssignmentDispatcher
from services.assignment_service import assign_lead, assign_pending_leads
from services.lead_intake_service import submit_lead
from services.ledger_service import list_for_lead

router = APIRouter()


@router.post(
    "/leads",
    response_model=LeadResponse,
    status_code=201,
    summary="Submit Lead",
    description="Capture a contact-form lead. Broker assignment runs in the background."
)
def create_lead(
    request: LeadCreateRequest,
    background_tasks: BackgroundTasks,
    store: RotationStore = Depends(get_store),
    dispatcher: AssignmentDispatcher = Depends(get_dispatcher),
):
    """
    Capture a new lead.

    The lead is stored as `pending` and queued for round-robin assignment.
    Assignment problems (no active brokers, lock contention) never fail this
    request; the lead simply stays `pending`.

    **Example request:**
    ```json
    {
      "name": "Maria Souza",
      "email": "maria@example.com",
      "phone": "+55 11 99999-0000",
      "location_interest": "Centro",
      "property_type": "apartment"
    }
    ```
    """
    try:
        new_lead = NewLead(
            name=request.name,
            email=str(request.email),
            phone=request.phone,
            location_interest=request.location_interest,
            property_type=request.property_type,
            price_range=request.price_range,
            observations=request.observations,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        lead = submit_lead(
            store,
            new_lead,
            lambda lead_id: background_tasks.add_task(dispatcher.run, lead_id),
        )
        return LeadResponse.from_domain(lead)

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create lead: {str(e)}"
        )


@router.get(
    "/leads",
    response_model=LeadListResponse,
    summary="List Leads",
)
def list_leads(
    status: Optional[str] = Query(None, description="Filter by status (e.g., 'pending', 'assigned')"),
    handled_by: Optional[UUID] = Query(None, description="Filter by handling broker id"),
    store: RotationStore = Depends(get_store),
):
    """
    List leads, newest first.

    **Example usage:**
    - Pending leads: `GET /api/v1/leads?status=pending`
    - A broker's leads: `GET /api/v1/leads?handled_by=<broker uuid>`
    """
    lead_status = None
    if status:
        try:
            lead_status = LeadStatus(status)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Must be one of {[s.value for s in LeadStatus]}, got '{status}'"
            )

    try:
        leads = store.list_leads(status=lead_status, handled_by=handled_by)
        return LeadListResponse(
            items=[LeadResponse.from_domain(lead) for lead in leads],
            total_count=len(leads),
        )
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list leads: {str(e)}"
        )


@router.post(
    "/leads/assign-pending",
    response_model=PendingSweepResponse,
    summary="Assign Pending Leads",
    description="Retry round-robin assignment for every lead still pending."
)
def assign_pending(store: RotationStore = Depends(get_store)):
    try:
        sweep = assign_pending_leads(store)
        return PendingSweepResponse(
            examined=sweep.examined,
            assigned=sweep.assigned,
            skipped=sweep.skipped,
            contended=sweep.contended,
            no_eligible_broker=sweep.no_eligible_broker,
        )
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to assign pending leads: {str(e)}"
        )


@router.get(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get Lead",
)
def get_lead(lead_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        lead = store.get_lead(lead_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch lead: {str(e)}"
        )
    if lead is None:
        raise HTTPException(status_code=404, detail=f"Lead not found: {lead_id}")
    return LeadResponse.from_domain(lead)


@router.patch(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update Lead",
    description="Update a lead's follow-up status and observations."
)
def update_lead(
    lead_id: UUID,
    payload: Dict[str, Any] = Body(...),
    store: RotationStore = Depends(get_store),
):
    """
    Update a lead from the broker dashboard.

    Only `status` (contacted, qualified, converted, lost) and `observations`
    can be changed. `handled_by` and `handled_at` belong to the assignment
    engine and are rejected with 422. A status change on a lead that has no
    broker yet is rejected with 409; the lead stays pending for assignment.
    """
    try:
        update = LeadUpdate.from_mapping(payload)
    except RotationError as e:
        raise rotation_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        return LeadResponse.from_domain(store.update_lead(lead_id, update))
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update lead: {str(e)}"
        )


@router.post(
    "/leads/{lead_id}/assign",
    response_model=AssignmentResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Assign Lead",
    description="Assign a lead to the next broker in the rotation."
)
def assign(lead_id: UUID, store: RotationStore = Depends(get_store)):
    """
    Explicitly run the assignment engine for one lead.

    **Outcomes:**
    - `assigned` (200): lead handed to the next broker, ledger entry included
    - `no_eligible_broker` (200): no active brokers; a valid terminal state,
      the lead stays pending and is returned without a ledger entry
    - `already_assigned` (409): the lead already has a broker
    - lock contention (503, `Retry-After`): safe to retry
    """
    try:
        result = assign_lead(store, lead_id)
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to assign lead: {str(e)}"
        )

    if result.status == AssignmentStatus.NO_ELIGIBLE_BROKER:
        return AssignmentResponse(
            outcome=result.status.value,
            lead=LeadResponse.from_domain(result.lead) if result.lead else None,
        )
    if result.status == AssignmentStatus.ALREADY_ASSIGNED:
        raise HTTPException(
            status_code=409,
            detail=f"{result.status.value}: lead {lead_id} is already handled by {result.broker_id}"
        )

    return AssignmentResponse(
        outcome=result.status.value,
        lead=LeadResponse.from_domain(result.lead),
        ledger_entry=LedgerEntryResponse.from_domain(result.ledger_entry),
    )


@router.get(
    "/leads/{lead_id}/distribution",
    response_model=List[LedgerEntryResponse],
    summary="Lead Distribution History",
)
def lead_distribution(lead_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        return [LedgerEntryResponse.from_domain(e) for e in list_for_lead(store, lead_id)]
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch distribution log: {str(e)}"
        )
