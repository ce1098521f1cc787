"""
Pydantic schemas for reservation request/response validation.
"""

from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel, Field


class SlotSelectionRequest(BaseModel):
    activity_key: Union[int, str]
    time_slot_id: Union[int, str]
    explicit_key: Optional[int] = Field(None, gt=0)
    attachment_ref: Optional[str] = Field(None, max_length=255)


class ReserveRequest(SlotSelectionRequest):
    subject_id: str = Field(..., min_length=1, max_length=64)
    replace_all: bool = False


class ReplaceAllRequest(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=64)
    selections: list[SlotSelectionRequest] = Field(default_factory=list, max_length=20)


class ReserveResponse(BaseModel):
    status: str
    error_code: Optional[str] = None
    keys: list[str] = []
    detail: Optional[str] = None


class CancelRequest(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=64)
    activity_key: Union[int, str]


class CancelResponse(BaseModel):
    removed: bool
    error_code: Optional[str] = None


class ReservationItem(BaseModel):
    key: str
    activity_id: str
    slot_index: int
    attachment_ref: Optional[str] = None
    created_at: Optional[datetime] = None
