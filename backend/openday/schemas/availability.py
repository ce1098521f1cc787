"""
Pydantic schemas for availability and reconciliation responses.
"""

from datetime import datetime
from pydantic import BaseModel


class AvailabilityResponse(BaseModel):
    activity_key: str
    available: int


class AllAvailabilityResponse(BaseModel):
    slots: dict[str, int]


class ReservationCountersResponse(BaseModel):
    counters: dict[str, int]


class CounterCorrectionItem(BaseModel):
    activity_id: str
    previous: int
    actual: int


class ConsistencyAlarmItem(BaseModel):
    activity_id: str
    counter: int
    capacity: int


class ReconciliationResponse(BaseModel):
    started_at: datetime
    activities_checked: int
    corrections: list[CounterCorrectionItem]
    alarms: list[ConsistencyAlarmItem]
    consistent: bool
