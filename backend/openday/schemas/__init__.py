from openday.schemas.reservation import (
    ReserveRequest, ReplaceAllRequest, SlotSelectionRequest, ReserveResponse,
    CancelRequest, CancelResponse, ReservationItem,
)
from openday.schemas.availability import (
    AvailabilityResponse, AllAvailabilityResponse, ReservationCountersResponse,
    ReconciliationResponse,
)

__all__ = [
    "ReserveRequest", "ReplaceAllRequest", "SlotSelectionRequest", "ReserveResponse",
    "CancelRequest", "CancelResponse", "ReservationItem",
    "AvailabilityResponse", "AllAvailabilityResponse", "ReservationCountersResponse",
    "ReconciliationResponse",
]
