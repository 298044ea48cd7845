"""
Broker Order API Endpoints.

Roster administration for the admin drag-and-drop screen: list, reorder,
enroll and disable brokers in the lead rotation.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_store
from api.errors import rotation_http_error
from api.models import (
    ErrorResponse,
    LedgerEntryResponse,
    ReorderRequest,
    ReorderResponse,
    RosterEntryResponse,
)
from domain.errors import RotationError
from domain.roster import PositionChange
from repositories.store import RotationStore
from services import roster_service
from services.ledger_service import list_for_broker

router = APIRouter()


@router.get(
    "/broker-order",
    response_model=List[RosterEntryResponse],
    summary="Get Broker Order",
    description="Roster in rotation order (inactive entries included), joined with broker profiles."
)
def get_broker_order(store: RotationStore = Depends(get_store)):
    try:
        listings = roster_service.list_roster_with_brokers(store)
        return [RosterEntryResponse.from_domain(l.entry, l.broker) for l in listings]
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch broker order: {str(e)}"
        )


@router.patch(
    "/broker-order",
    response_model=ReorderResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Reorder Brokers",
)
def update_broker_order(request: ReorderRequest, store: RotationStore = Depends(get_store)):
    """
    Apply new rotation positions in one atomic batch.

    Positions need not be contiguous; only their relative order matters.
    Entry ids that do not exist are skipped and listed in `skipped`.

    **Example request:**
    ```json
    {"orders": [{"id": 5, "orderPosition": 1}, {"id": 3, "orderPosition": 2}]}
    ```
    """
    try:
        result = roster_service.reorder_roster(
            store,
            [PositionChange(entry_id=o.id, order_position=o.order_position) for o in request.orders],
        )
        return ReorderResponse(success=True, applied=result.applied, skipped=result.skipped)
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update broker order: {str(e)}"
        )


@router.post(
    "/broker-order/{broker_id}",
    response_model=RosterEntryResponse,
    status_code=201,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Enroll Broker",
    description="Add a broker (or reinstate a disabled one) at the end of the rotation."
)
def add_broker_to_order(broker_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        entry = roster_service.enroll_broker(store, broker_id)
        return RosterEntryResponse.from_domain(entry, store.get_profile(broker_id))
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to add broker to order: {str(e)}"
        )


@router.delete(
    "/broker-order/{broker_id}",
    response_model=RosterEntryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Disable Broker",
    description="Remove a broker from future assignments. History and counters are kept."
)
def remove_broker_from_order(broker_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        entry = roster_service.disable_broker(store, broker_id)
        return RosterEntryResponse.from_domain(entry)
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to remove broker from order: {str(e)}"
        )


@router.get(
    "/broker-order/{broker_id}/distribution",
    response_model=List[LedgerEntryResponse],
    summary="Broker Distribution History",
)
def broker_distribution(broker_id: UUID, store: RotationStore = Depends(get_store)):
    try:
        return [LedgerEntryResponse.from_domain(e) for e in list_for_broker(store, broker_id)]
    except RotationError as e:
        raise rotation_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch distribution log: {str(e)}"
        )
