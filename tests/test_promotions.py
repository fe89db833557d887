"""
Promotion validation and usage accounting tests
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cinebook.core.exceptions import MinimumPurchaseNotMetError, PromotionNotFoundError
from cinebook.models.promotion import DiscountType, Promotion
from cinebook.services.promotion_service import PromotionResolver, compute_discount


@pytest.fixture
def resolver():
    return PromotionResolver()


class TestComputeDiscount:
    """Discount math per promotion type"""

    def test_percentage_is_capped(self):
        promotion = Promotion(discount_type=DiscountType.PERCENTAGE, value=Decimal("20"),
                              max_discount=Decimal("15.00"))
        assert compute_discount(promotion, Decimal("50.00")) == Decimal("10.00")
        assert compute_discount(promotion, Decimal("200.00")) == Decimal("15.00")

    def test_fixed_never_exceeds_subtotal(self):
        promotion = Promotion(discount_type=DiscountType.FIXED, value=Decimal("10.00"))
        assert compute_discount(promotion, Decimal("100.00")) == Decimal("10.00")
        assert compute_discount(promotion, Decimal("4.00")) == Decimal("4.00")

    def test_bogo_is_half_the_subtotal(self):
        promotion = Promotion(discount_type=DiscountType.BOGO, value=Decimal("0"))
        assert compute_discount(promotion, Decimal("75.00")) == Decimal("37.50")


@pytest.mark.unit
@pytest.mark.asyncio
class TestApply:
    """PromotionResolver.apply"""

    async def test_fixed_promotion(self, db_session, resolver, factory):
        await factory.promotion("10OFF")

        result = await resolver.apply(db_session, "10OFF", Decimal("100.00"))
        assert result.discount == Decimal("10.00")
        assert result.final_total == Decimal("90.00")

    async def test_code_lookup_ignores_case(self, db_session, resolver, factory):
        await factory.promotion("SUMMER")
        result = await resolver.apply(db_session, "summer", Decimal("100.00"))
        assert result.promotion.code == "SUMMER"

    async def test_minimum_purchase(self, db_session, resolver, factory):
        await factory.promotion("10OFF", min_purchase=Decimal("50.00"))

        with pytest.raises(MinimumPurchaseNotMetError):
            await resolver.apply(db_session, "10OFF", Decimal("49.99"))

    @pytest.mark.parametrize("overrides", [
        {"is_active": False},
        {"valid_until": datetime.now(timezone.utc) - timedelta(days=1)},
        {"valid_from": datetime.now(timezone.utc) + timedelta(days=1)},
        {"usage_limit": 3, "used_count": 3},
    ])
    async def test_unusable_promotions_read_as_not_found(self, db_session, resolver, factory, overrides):
        await factory.promotion("NOPE", **overrides)

        with pytest.raises(PromotionNotFoundError):
            await resolver.apply(db_session, "NOPE", Decimal("100.00"))

    async def test_unknown_code(self, db_session, resolver):
        with pytest.raises(PromotionNotFoundError):
            await resolver.apply(db_session, "MISSING", Decimal("100.00"))

    async def test_codes_are_unique_ignoring_case(self, factory):
        await factory.promotion("SAVE")

        with pytest.raises(IntegrityError):
            await factory.promotion("save")


@pytest.mark.unit
@pytest.mark.asyncio
class TestUsageCounter:
    """Guarded redeem / restore"""

    async def test_redeem_stops_at_limit(self, db_session, resolver, factory, session_factory):
        promotion = await factory.promotion("ONCE", usage_limit=1)

        async with db_session.begin():
            assert await resolver.redeem(db_session, promotion.id) is True
        async with db_session.begin():
            assert await resolver.redeem(db_session, promotion.id) is False

        async with session_factory() as session:
            stored = await session.get(Promotion, promotion.id)
            assert stored.used_count == 1

    async def test_unlimited_promotion_keeps_counting(self, db_session, resolver, factory, session_factory):
        promotion = await factory.promotion("MANY", usage_limit=None)

        async with db_session.begin():
            for _ in range(5):
                assert await resolver.redeem(db_session, promotion.id)

        async with session_factory() as session:
            assert (await session.get(Promotion, promotion.id)).used_count == 5

    async def test_restore_is_floored_at_zero(self, db_session, resolver, factory, session_factory):
        promotion = await factory.promotion("BACK", used_count=1, usage_limit=5)

        async with db_session.begin():
            assert await resolver.restore(db_session, promotion.id) is True
        async with db_session.begin():
            assert await resolver.restore(db_session, promotion.id) is False

        async with session_factory() as session:
            assert (await session.get(Promotion, promotion.id)).used_count == 0
