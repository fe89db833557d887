"""
Pricing and promotion schemas
"""

from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import Field

from cinebook.schemas.base import BaseSchema


class PriceCalculateRequest(BaseSchema):
    showtime_id: UUID
    seats: List[str] = Field(..., min_length=1)


class PromotionValidateRequest(BaseSchema):
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal = Field(..., ge=0)
