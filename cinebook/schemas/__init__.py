"""
Pydantic schemas for request and response validation
"""

from cinebook.schemas.booking import BookingCreate, TicketValidateRequest
from cinebook.schemas.seat import SeatHoldRequest, SeatReleaseRequest
from cinebook.schemas.pricing import PriceCalculateRequest, PromotionValidateRequest
from cinebook.schemas.response import ErrorDetail, ErrorResponse

__all__ = [
    "BookingCreate",
    "TicketValidateRequest",
    "SeatHoldRequest",
    "SeatReleaseRequest",
    "PriceCalculateRequest",
    "PromotionValidateRequest",
    "ErrorDetail",
    "ErrorResponse",
]
