"""
Availability endpoints for display pages.
Served through the capacity cache; may lag bookings by up to COUNT_CACHE_TTL.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from openday.api.deps import get_engine
from openday.core.exceptions import InvalidSlotIdentifier, SlotNotFound
from openday.schemas.availability import (
    AllAvailabilityResponse,
    AvailabilityResponse,
    ReservationCountersResponse,
)
from openday.services.engine import ReservationEngine

router = APIRouter(tags=["Availability"])


@router.get("/availability", response_model=AllAvailabilityResponse)
async def list_availability(engine: ReservationEngine = Depends(get_engine)):
    """Seats left for every canonical key, keyed as `<activity>:<slot>`."""
    availability = await engine.availability.get_all_availability()
    return AllAvailabilityResponse(slots={str(key): seats for key, seats in sorted(availability.items())})


@router.get("/availability/{activity_key}", response_model=AvailabilityResponse)
async def get_availability(activity_key: str, engine: ReservationEngine = Depends(get_engine)):
    """Seats left on one activity (textual id or numeric row id)."""
    try:
        available = await engine.availability.get_availability(activity_key)
    except SlotNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidSlotIdentifier as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return AvailabilityResponse(activity_key=activity_key, available=available)


@router.get("/reservation-counters", response_model=ReservationCountersResponse)
async def reservation_counters(engine: ReservationEngine = Depends(get_engine)):
    """Ledger rows per canonical key."""
    counts = await engine.availability.get_reservation_counts()
    return ReservationCountersResponse(counters={str(key): count for key, count in sorted(counts.items())})
