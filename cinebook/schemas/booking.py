"""
Booking schemas
"""

from pydantic import Field, field_validator
from typing import List, Optional
from uuid import UUID

from cinebook.schemas.base import BaseSchema
from cinebook.models.invoice import PaymentMethod


def _unique_seats(seats: List[str]) -> List[str]:
    cleaned = [seat.strip().upper() for seat in seats]
    if len(cleaned) != len(set(cleaned)):
        raise ValueError('Duplicate seats not allowed')
    return cleaned


class BookingCreate(BaseSchema):
    """Booking creation schema"""
    showtime_id: UUID
    seats: List[str] = Field(..., min_length=1)
    session_id: Optional[str] = Field(None, max_length=255)
    promotion_code: Optional[str] = Field(None, max_length=50)
    payment_method: PaymentMethod = PaymentMethod.CARD

    @field_validator('seats')
    def validate_unique_seats(cls, v):
        return _unique_seats(v)


class TicketValidateRequest(BaseSchema):
    """Entrance validation by ticket number"""
    ticket_number: str = Field(..., min_length=1, max_length=40)
