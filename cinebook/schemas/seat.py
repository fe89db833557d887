"""
Seat hold schemas
"""

from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from cinebook.schemas.base import BaseSchema
from cinebook.schemas.booking import _unique_seats


class SeatHoldRequest(BaseSchema):
    seats: List[str] = Field(..., min_length=1)
    session_id: Optional[str] = Field(None, max_length=255)

    @field_validator('seats')
    def validate_unique_seats(cls, v):
        return _unique_seats(v)


class SeatReleaseRequest(BaseSchema):
    session_id: Optional[str] = Field(None, max_length=255)
    reservation_id: Optional[UUID] = None
