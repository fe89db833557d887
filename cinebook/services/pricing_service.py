"""
Dynamic seat pricing
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.clock import as_utc, utcnow
from cinebook.core.exceptions import CinebookException, InvalidSeatError, PricingError
from cinebook.core.money import ZERO, to_money
from cinebook.models.pricing_rule import PricingRule
from cinebook.models.room import RoomType, SeatType
from cinebook.models.showtime import Showtime
from cinebook.services.availability_service import get_showtime
from cinebook.services.seat_map import SeatMap

logger = logging.getLogger(__name__)


@dataclass
class SeatPrice:
    seat_id: str
    seat_type: str
    base_price: Decimal
    seat_type_multiplier: float
    price: Decimal
    rule_id: Optional[Any] = None
    rule_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seat_id": self.seat_id,
            "seat_type": self.seat_type,
            "base_price": str(self.base_price),
            "seat_type_multiplier": self.seat_type_multiplier,
            "price": str(self.price),
            "rule_id": str(self.rule_id) if self.rule_id else None,
            "rule_name": self.rule_name,
        }


@dataclass
class PriceQuote:
    showtime_id: Any
    seats: List[SeatPrice] = field(default_factory=list)
    subtotal: Decimal = ZERO
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "showtime_id": str(self.showtime_id),
            "seats": [seat.to_dict() for seat in self.seats],
            "subtotal": str(self.subtotal),
            "fallback": self.fallback,
        }


def showtime_weekday(starts_at: datetime) -> int:
    """Day of week with 0 = Sunday, matching PricingRule.day_of_week."""
    return (as_utc(starts_at).weekday() + 1) % 7


def in_time_window(moment: time, start: Optional[time], end: Optional[time]) -> bool:
    """Half-open window check; a window whose start is after its end wraps midnight."""
    if start is None and end is None:
        return True
    if start is None:
        return moment < end
    if end is None:
        return moment >= start
    if start <= end:
        return start <= moment < end
    return moment >= start or moment < end


class PricingResolver:
    """
    Computes per-seat prices from the room type base price, seat type
    multiplier and the best matching pricing rule.
    """

    @staticmethod
    def _room_type(showtime: Showtime) -> RoomType:
        room_type = showtime.room_type or (showtime.room.room_type if showtime.room else None)
        if room_type is None:
            raise PricingError(f"Showtime {showtime.id} has no room type")
        return room_type

    async def _seat_type_multipliers(self, db: AsyncSession, codes: List[str]) -> Dict[str, float]:
        if not codes:
            return {}
        result = await db.execute(
            select(SeatType.code, SeatType.price_multiplier).where(SeatType.code.in_(codes))
        )
        return {code: float(multiplier) for code, multiplier in result.all()}

    async def _candidate_rules(
        self,
        db: AsyncSession,
        room_type_id: Any,
        now: datetime
    ) -> List[PricingRule]:
        result = await db.execute(
            select(PricingRule).where(
                PricingRule.room_type_id == room_type_id,
                PricingRule.is_active.is_(True),
                or_(PricingRule.valid_from.is_(None), PricingRule.valid_from <= now),
                or_(PricingRule.valid_until.is_(None), PricingRule.valid_until >= now)
            )
        )
        return list(result.scalars())

    @staticmethod
    def rule_specificity(rule: PricingRule, showtime: Showtime, seat_type: str) -> Optional[Tuple[int, int]]:
        """
        (scope matches, condition matches) when every set field of the rule
        matches, else None.
        """
        scope = 0
        if rule.seat_type_code:
            if rule.seat_type_code != seat_type:
                return None
            scope += 1
        if rule.audio_type is not None:
            if rule.audio_type != showtime.audio_type:
                return None
            scope += 1
        if rule.format is not None:
            if rule.format != showtime.format:
                return None
            scope += 1

        conditions = 0
        starts_at = as_utc(showtime.starts_at)
        if rule.day_of_week is not None:
            if rule.day_of_week != showtime_weekday(starts_at):
                return None
            conditions += 1
        if rule.start_time is not None or rule.end_time is not None:
            if not in_time_window(starts_at.time(), rule.start_time, rule.end_time):
                return None
            conditions += 1

        return scope, conditions

    def select_rule(
        self,
        rules: List[PricingRule],
        showtime: Showtime,
        seat_type: str
    ) -> Optional[PricingRule]:
        """
        Pick the winning rule: most scope matches, then most condition
        matches, then fixed-price rules, then newest, then lowest id.
        """
        ranked = []
        for rule in rules:
            specificity = self.rule_specificity(rule, showtime, seat_type)
            if specificity is None:
                continue
            created = as_utc(rule.created_at).timestamp() if rule.created_at else 0.0
            ranked.append((
                (-specificity[0], -specificity[1], rule.fixed_price is None, -created, str(rule.id)),
                rule
            ))
        if not ranked:
            return None
        ranked.sort(key=lambda item: item[0])
        return ranked[0][1]

    async def price(
        self,
        db: AsyncSession,
        showtime_id: Any,
        seats: List[str],
        now: Optional[datetime] = None
    ) -> PriceQuote:
        """Price every seat; raises PricingError on any data problem."""
        now = now or utcnow()
        try:
            showtime = await get_showtime(db, showtime_id)
            room_type = self._room_type(showtime)
            seat_map = SeatMap(showtime.room.seat_map)

            missing = seat_map.missing(seats)
            if missing:
                raise InvalidSeatError(missing)

            seat_types = {seat: seat_map.seat_type(seat) for seat in seats}
            multipliers = await self._seat_type_multipliers(db, sorted(set(seat_types.values())))
            rules = await self._candidate_rules(db, room_type.id, now)
            base_price = Decimal(str(room_type.base_price))

            quote = PriceQuote(showtime_id=showtime.id)
            for seat in seats:
                seat_type = seat_types[seat]
                seat_multiplier = multipliers.get(seat_type, 1.0)
                rule = self.select_rule(rules, showtime, seat_type)

                if rule is not None and rule.fixed_price is not None:
                    amount = Decimal(str(rule.fixed_price))
                else:
                    rule_multiplier = rule.multiplier if rule is not None else 1.0
                    amount = base_price * Decimal(str(seat_multiplier)) * Decimal(str(rule_multiplier))

                quote.seats.append(SeatPrice(
                    seat_id=seat,
                    seat_type=seat_type,
                    base_price=to_money(base_price),
                    seat_type_multiplier=seat_multiplier,
                    price=to_money(amount),
                    rule_id=rule.id if rule is not None else None,
                    rule_name=rule.name if rule is not None else None,
                ))

            quote.subtotal = to_money(sum((seat.price for seat in quote.seats), ZERO))
            return quote

        except CinebookException:
            raise
        except Exception as e:
            logger.error(f"Pricing failed for showtime {showtime_id}: {e}")
            raise PricingError(f"Could not price seats: {e}")

    async def fallback_price(self, db: AsyncSession, showtime_id: Any, seat_count: int) -> Decimal:
        """Base price times seat count, used when dynamic pricing fails."""
        showtime = await get_showtime(db, showtime_id)
        room_type = self._room_type(showtime)
        return to_money(Decimal(str(room_type.base_price)) * seat_count)

    async def quote_or_fallback(
        self,
        db: AsyncSession,
        showtime_id: Any,
        seats: List[str]
    ) -> PriceQuote:
        """Dynamic quote, or a base-price quote flagged ``fallback`` on PricingError."""
        try:
            return await self.price(db, showtime_id, seats)
        except PricingError as e:
            logger.warning(f"Falling back to base price for showtime {showtime_id}: {e.message}")
            subtotal = await self.fallback_price(db, showtime_id, len(seats))
            return PriceQuote(showtime_id=showtime_id, subtotal=subtotal, fallback=True)


pricing_resolver = PricingResolver()
