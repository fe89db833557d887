"""
Price quote endpoint
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.config import settings
from cinebook.core.database import get_session
from cinebook.core.money import to_money
from cinebook.schemas.pricing import PriceCalculateRequest
from cinebook.services.pricing_service import pricing_resolver

router = APIRouter()


@router.post("/calculate")
async def calculate_price(
    request: PriceCalculateRequest,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Quote seat prices, falling back to the room base price when dynamic
    pricing fails
    """
    quote = await pricing_resolver.quote_or_fallback(db, request.showtime_id, request.seats)
    tax_rate = Decimal(str(settings.TAX_RATE))
    data = quote.to_dict()
    data["tax"] = str(to_money(quote.subtotal * tax_rate))
    data["total"] = str(to_money(quote.subtotal * (Decimal("1") + tax_rate)))
    return {"success": True, "message": "Price calculated", "data": data}
