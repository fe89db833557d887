"""
Promotion code endpoints
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.database import get_session
from cinebook.schemas.pricing import PromotionValidateRequest
from cinebook.services.promotion_service import promotion_resolver

router = APIRouter()


@router.post("/validate")
async def validate_promotion(
    request: PromotionValidateRequest,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Check a code against a subtotal without redeeming it
    """
    result = await promotion_resolver.validate(db, request.code, request.subtotal)
    return {"success": True, "message": "Promotion is valid", "data": result.to_dict()}
