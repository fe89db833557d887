"""
Promotion code validation, discount computation and usage accounting
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.clock import utcnow
from cinebook.core.exceptions import MinimumPurchaseNotMetError, PromotionNotFoundError
from cinebook.core.money import ZERO, to_money
from cinebook.models.promotion import Promotion, DiscountType

logger = logging.getLogger(__name__)


@dataclass
class PromotionResult:
    promotion: Promotion
    discount: Decimal
    final_total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promotion_id": str(self.promotion.id),
            "code": self.promotion.code,
            "name": self.promotion.name,
            "discount_type": self.promotion.discount_type.value,
            "discount": str(self.discount),
            "final_total": str(self.final_total),
        }


def compute_discount(promotion: Promotion, subtotal: Decimal) -> Decimal:
    """Discount for ``subtotal``, never more than the subtotal itself."""
    value = Decimal(str(promotion.value))
    if promotion.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * value / Decimal("100")
        if promotion.max_discount is not None:
            discount = min(discount, Decimal(str(promotion.max_discount)))
    elif promotion.discount_type == DiscountType.FIXED:
        discount = value
    elif promotion.discount_type == DiscountType.BOGO:
        # Half the subtotal regardless of seat count
        discount = subtotal / Decimal("2")
    else:
        discount = ZERO
    return to_money(min(max(discount, ZERO), subtotal))


class PromotionResolver:
    """Looks up promotion codes and keeps ``used_count`` within its limit"""

    async def find_usable(self, db: AsyncSession, code: str, now: Optional[datetime] = None) -> Promotion:
        """
        Active promotion with this code, inside its validity window and below
        its usage limit. Every failure reads as not found.
        """
        code = (code or "").strip()
        if not code:
            raise PromotionNotFoundError(code)
        now = now or utcnow()

        result = await db.execute(
            select(Promotion).where(
                func.upper(Promotion.code) == code.upper(),
                Promotion.is_active.is_(True),
                or_(Promotion.valid_from.is_(None), Promotion.valid_from <= now),
                or_(Promotion.valid_until.is_(None), Promotion.valid_until >= now),
                or_(Promotion.usage_limit.is_(None), Promotion.used_count < Promotion.usage_limit)
            )
            .order_by((Promotion.code == code).desc(), Promotion.created_at)
        )
        promotion = result.scalars().first()
        if not promotion:
            raise PromotionNotFoundError(code)
        return promotion

    async def apply(
        self,
        db: AsyncSession,
        code: str,
        subtotal: Decimal,
        now: Optional[datetime] = None
    ) -> PromotionResult:
        subtotal = to_money(subtotal)
        promotion = await self.find_usable(db, code, now)

        if promotion.min_purchase is not None and subtotal < Decimal(str(promotion.min_purchase)):
            raise MinimumPurchaseNotMetError(to_money(promotion.min_purchase))

        discount = compute_discount(promotion, subtotal)
        final_total = to_money(max(ZERO, subtotal - discount))
        logger.debug(f"Promotion {promotion.code} gives {discount} off {subtotal}")
        return PromotionResult(promotion=promotion, discount=discount, final_total=final_total)

    # Read-only check used by the validation endpoint
    validate = apply

    async def redeem(self, db: AsyncSession, promotion_id: Any) -> bool:
        """
        Guarded increment of ``used_count``. Returns False when the limit was
        reached in the meantime. Must run inside the caller's transaction.
        """
        result = await db.execute(
            update(Promotion)
            .where(
                Promotion.id == promotion_id,
                or_(Promotion.usage_limit.is_(None), Promotion.used_count < Promotion.usage_limit)
            )
            .values(used_count=Promotion.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        redeemed = result.rowcount == 1
        if not redeemed:
            logger.warning(f"Promotion {promotion_id} usage limit reached during purchase")
        return redeemed

    async def restore(self, db: AsyncSession, promotion_id: Any) -> bool:
        """Guarded decrement of ``used_count``, floored at zero."""
        result = await db.execute(
            update(Promotion)
            .where(Promotion.id == promotion_id, Promotion.used_count > 0)
            .values(used_count=Promotion.used_count - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


promotion_resolver = PromotionResolver()
