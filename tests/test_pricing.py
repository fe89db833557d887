"""
Dynamic pricing tests
"""

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from cinebook.core.clock import as_utc
from cinebook.core.exceptions import InvalidSeatError, PricingError
from cinebook.models.showtime import AudioType, ScreenFormat
from cinebook.services.pricing_service import (
    PricingResolver,
    in_time_window,
    showtime_weekday,
)


@pytest.fixture
def resolver():
    return PricingResolver()


class TestTimeWindow:
    """in_time_window / showtime_weekday"""

    def test_plain_window_is_half_open(self):
        assert in_time_window(time(10, 0), time(10, 0), time(16, 0))
        assert in_time_window(time(15, 59), time(10, 0), time(16, 0))
        assert not in_time_window(time(16, 0), time(10, 0), time(16, 0))

    def test_window_wrapping_midnight(self):
        assert in_time_window(time(23, 30), time(22, 0), time(2, 0))
        assert in_time_window(time(1, 0), time(22, 0), time(2, 0))
        assert not in_time_window(time(12, 0), time(22, 0), time(2, 0))

    def test_open_ended_windows(self):
        assert in_time_window(time(12, 0), None, None)
        assert in_time_window(time(23, 0), time(18, 0), None)
        assert not in_time_window(time(9, 0), time(18, 0), None)

    def test_weekday_counts_from_sunday(self):
        sunday = datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)
        assert showtime_weekday(sunday) == 0
        assert showtime_weekday(sunday + timedelta(days=2)) == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestPricingResolver:
    """PricingResolver.price"""

    async def test_base_price_times_seat_type_multiplier(self, db_session, resolver, cinema):
        quote = await resolver.price(db_session, cinema.showtime.id, ["A1", "A2", "J1"])

        prices = {seat.seat_id: seat.price for seat in quote.seats}
        assert prices == {"A1": Decimal("50.00"), "A2": Decimal("50.00"), "J1": Decimal("75.00")}
        assert quote.subtotal == Decimal("175.00")
        assert not quote.fallback

    async def test_matching_rule_multiplier_applies(self, db_session, resolver, cinema, factory):
        weekday = showtime_weekday(cinema.showtime.starts_at)
        await factory.rule(cinema.room_type, name="Day discount", day_of_week=weekday, multiplier=0.8)
        await factory.rule(cinema.room_type, name="Other day", day_of_week=(weekday + 1) % 7, multiplier=3.0)

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1"])
        assert quote.seats[0].price == Decimal("40.00")
        assert quote.seats[0].rule_name == "Day discount"

    async def test_scoped_rule_beats_general_rule(self, db_session, resolver, cinema, factory):
        await factory.rule(cinema.room_type, name="Everyone", multiplier=0.5)
        await factory.rule(cinema.room_type, name="VIP surcharge", seat_type_code="vip", multiplier=2.0)

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1", "J1"])
        prices = {seat.seat_id: (seat.price, seat.rule_name) for seat in quote.seats}
        assert prices["A1"] == (Decimal("25.00"), "Everyone")
        assert prices["J1"] == (Decimal("150.00"), "VIP surcharge")

    async def test_scope_match_outweighs_condition_match(self, db_session, resolver, cinema, factory):
        weekday = showtime_weekday(cinema.showtime.starts_at)
        await factory.rule(cinema.room_type, name="Weekday", day_of_week=weekday, multiplier=0.5)
        await factory.rule(
            cinema.room_type, name="Subtitled", audio_type=AudioType.SUBTITLED, multiplier=1.2
        )

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1"])
        assert quote.seats[0].rule_name == "Subtitled"
        assert quote.seats[0].price == Decimal("60.00")

    async def test_fixed_price_wins_tie(self, db_session, resolver, cinema, factory):
        await factory.rule(cinema.room_type, name="Multiplier", format=ScreenFormat.TWO_D, multiplier=2.0)
        await factory.rule(
            cinema.room_type, name="Flat", format=ScreenFormat.TWO_D, fixed_price=Decimal("12.50")
        )

        quote = await resolver.price(db_session, cinema.showtime.id, ["J1"])
        assert quote.seats[0].rule_name == "Flat"
        assert quote.seats[0].price == Decimal("12.50")

    async def test_non_matching_scope_is_ignored(self, db_session, resolver, cinema, factory):
        await factory.rule(cinema.room_type, name="IMAX only", format=ScreenFormat.IMAX, multiplier=3.0)
        await factory.rule(cinema.room_type, name="Dubbed only", audio_type=AudioType.DUBBED, multiplier=3.0)

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1"])
        assert quote.seats[0].rule_id is None
        assert quote.subtotal == Decimal("50.00")

    async def test_inactive_and_out_of_window_rules_are_ignored(self, db_session, resolver, cinema, factory):
        now = datetime.now(timezone.utc)
        await factory.rule(cinema.room_type, name="Off", is_active=False, multiplier=3.0)
        await factory.rule(cinema.room_type, name="Over", valid_until=now - timedelta(days=1), multiplier=3.0)
        await factory.rule(cinema.room_type, name="Future", valid_from=now + timedelta(days=1), multiplier=3.0)

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1"])
        assert quote.subtotal == Decimal("50.00")

    async def test_time_window_uses_showtime_start(self, db_session, resolver, cinema, factory):
        hour = as_utc(cinema.showtime.starts_at).hour
        await factory.rule(
            cinema.room_type,
            name="This hour",
            start_time=time(hour, 0),
            end_time=time((hour + 1) % 24, 0),
            multiplier=0.9,
        )

        quote = await resolver.price(db_session, cinema.showtime.id, ["A1"])
        assert quote.seats[0].price == Decimal("45.00")

    async def test_unknown_seat(self, db_session, resolver, cinema):
        with pytest.raises(InvalidSeatError):
            await resolver.price(db_session, cinema.showtime.id, ["Q7"])


@pytest.mark.unit
@pytest.mark.asyncio
class TestFallback:
    """Base price fallback"""

    async def test_fallback_price(self, db_session, resolver, cinema):
        assert await resolver.fallback_price(db_session, cinema.showtime.id, 3) == Decimal("150.00")

    async def test_quote_or_fallback_on_pricing_error(self, db_session, resolver, cinema, monkeypatch):
        monkeypatch.setattr(resolver, "price", AsyncMock(side_effect=PricingError("rules broken")))

        quote = await resolver.quote_or_fallback(db_session, cinema.showtime.id, ["J1", "J2"])
        assert quote.fallback
        assert quote.subtotal == Decimal("100.00")
