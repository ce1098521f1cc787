"""
Reservation endpoints: reserve, replace-all, cancel, list.

Engine results map to HTTP as:
  NO_SPOTS_AVAILABLE      -> 409
  SLOT_NOT_FOUND          -> 404
  INVALID_SLOT_IDENTIFIER -> 422
  TRANSACTION_ABORTED     -> 503 (retryable, never shown as "full")
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from openday.api.deps import get_engine
from openday.schemas.reservation import (
    CancelRequest,
    CancelResponse,
    ReplaceAllRequest,
    ReservationItem,
    ReserveRequest,
    ReserveResponse,
)
from openday.services.admission_service import ReservationResult, ReservationStatus, SlotSelection
from openday.services.engine import ReservationEngine
from openday.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/reservations", tags=["Reservations"])

STATUS_CODES = {
    ReservationStatus.SUCCESS: status.HTTP_201_CREATED,
    ReservationStatus.NO_SPOTS_AVAILABLE: status.HTTP_409_CONFLICT,
    ReservationStatus.SLOT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ReservationStatus.INVALID_SLOT_IDENTIFIER: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ReservationStatus.TRANSACTION_ABORTED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _respond(result: ReservationResult) -> JSONResponse:
    body = ReserveResponse(
        status=result.status.value,
        error_code=result.error_code,
        keys=[str(key) for key in result.keys],
        detail=result.detail,
    )
    headers = {"Retry-After": "1"} if result.status is ReservationStatus.TRANSACTION_ABORTED else None
    return JSONResponse(
        status_code=STATUS_CODES[result.status],
        content=body.model_dump(),
        headers=headers,
    )


@router.post("/", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    request: ReserveRequest,
    engine: ReservationEngine = Depends(get_engine),
):
    """
    Book one time slot.

    With `replace_all` the subject's existing bookings are swapped for this
    one atomically.
    """
    result = await engine.coordinator.reserve(
        request.subject_id,
        request.activity_key,
        request.time_slot_id,
        explicit_key=request.explicit_key,
        replace_all=request.replace_all,
        attachment_ref=request.attachment_ref,
    )
    return _respond(result)


@router.post("/replace", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
async def replace_reservations(
    request: ReplaceAllRequest,
    engine: ReservationEngine = Depends(get_engine),
):
    """Replace the subject's whole booking set; all-or-nothing."""
    selections = [
        SlotSelection(s.activity_key, s.time_slot_id, s.explicit_key, s.attachment_ref)
        for s in request.selections
    ]
    result = await engine.coordinator.replace_all_for_subject(request.subject_id, selections)
    return _respond(result)


@router.delete("/", response_model=CancelResponse)
async def cancel_reservation(
    request: CancelRequest,
    engine: ReservationEngine = Depends(get_engine),
):
    """Cancel the subject's booking on an activity. Cancelling nothing is not an error."""
    result = await engine.coordinator.cancel(request.subject_id, request.activity_key)
    body = CancelResponse(removed=result.removed, error_code=result.error_code)
    if result.status in (ReservationStatus.SUCCESS, ReservationStatus.SLOT_NOT_FOUND):
        # An unknown activity simply has nothing to cancel
        return body
    return JSONResponse(status_code=STATUS_CODES[result.status], content=body.model_dump())


@router.get("/{subject_id}", response_model=list[ReservationItem])
async def list_reservations(
    subject_id: str,
    engine: ReservationEngine = Depends(get_engine),
):
    """All bookings held by a subject."""
    views = await engine.availability.list_subject_reservations(subject_id)
    return [
        ReservationItem(
            key=str(view.key),
            activity_id=view.key.activity_id,
            slot_index=view.key.slot_index,
            attachment_ref=view.attachment_ref,
            created_at=view.created_at,
        )
        for view in views
    ]
