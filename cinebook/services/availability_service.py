"""
Seat availability for a showtime.

A seat is unavailable when it belongs to a confirmed booking or to a hold that
is still reserved and not yet expired. Nothing is cached: holds expire
continuously, so every call reads the current rows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Set
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cinebook.core.clock import utcnow
from cinebook.core.exceptions import ShowtimeNotFoundError
from cinebook.models.booking import Booking, BookingStatus
from cinebook.models.room import Room
from cinebook.models.seat_reservation import SeatReservation, ReservationStatus
from cinebook.models.showtime import Showtime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holder:
    """
    Party holding or buying seats: the user plus an optional client session.

    The holder key is the session id when one is supplied, else the user id;
    one active hold exists per key and showtime. A hold only ever belongs to
    the user who placed it, whatever session id a client sends.
    """
    user_id: UUID
    session_id: Optional[str] = None

    @property
    def key(self) -> str:
        return self.session_id or str(self.user_id)

    def owns(self, reservation: SeatReservation) -> bool:
        return reservation.user_id == self.user_id


async def get_showtime(db: AsyncSession, showtime_id: Any, for_update: bool = False) -> Showtime:
    """
    Load a showtime with its room and room types, optionally row-locked
    """
    stmt = (
        select(Showtime)
        .options(
            joinedload(Showtime.room).joinedload(Room.room_type),
            joinedload(Showtime.room_type),
            joinedload(Showtime.movie),
        )
        .where(Showtime.id == showtime_id)
    )
    if for_update:
        stmt = stmt.with_for_update(of=Showtime)

    result = await db.execute(stmt)
    showtime = result.unique().scalar_one_or_none()
    if not showtime:
        raise ShowtimeNotFoundError(showtime_id)
    return showtime


class SeatAvailabilityService:
    """Derives the unavailable seat set of a showtime"""

    async def confirmed_seats(self, db: AsyncSession, showtime_id: Any) -> Set[str]:
        result = await db.execute(
            select(Booking.seats).where(
                Booking.showtime_id == showtime_id,
                Booking.status == BookingStatus.CONFIRMED
            )
        )
        seats: Set[str] = set()
        for booking_seats in result.scalars():
            seats.update(booking_seats or [])
        return seats

    async def active_reservations(
        self,
        db: AsyncSession,
        showtime_id: Any,
        now: Optional[datetime] = None
    ) -> list:
        now = now or utcnow()
        result = await db.execute(
            select(SeatReservation).where(
                SeatReservation.showtime_id == showtime_id,
                SeatReservation.status == ReservationStatus.RESERVED,
                SeatReservation.expires_at > now
            )
        )
        return list(result.scalars())

    async def held_seats(
        self,
        db: AsyncSession,
        showtime_id: Any,
        exclude_holder: Optional[Holder] = None,
        now: Optional[datetime] = None
    ) -> Set[str]:
        seats: Set[str] = set()
        for reservation in await self.active_reservations(db, showtime_id, now):
            if exclude_holder is not None and exclude_holder.owns(reservation):
                continue
            seats.update(reservation.seats or [])
        return seats

    async def unavailable_seats(
        self,
        db: AsyncSession,
        showtime_id: Any,
        exclude_holder: Optional[Holder] = None,
        now: Optional[datetime] = None
    ) -> Set[str]:
        """
        Union of confirmed-booking seats and live-hold seats.

        ``exclude_holder`` ignores holds owned by that holder; confirmed seats
        are always included.
        """
        confirmed = await self.confirmed_seats(db, showtime_id)
        held = await self.held_seats(db, showtime_id, exclude_holder, now)
        return confirmed | held

    async def seat_states(
        self,
        db: AsyncSession,
        showtime_id: Any,
        now: Optional[datetime] = None
    ) -> Dict[str, str]:
        """Per-seat state for the seat map: "occupied" or "reserved"."""
        states = {seat: "reserved" for seat in await self.held_seats(db, showtime_id, now=now)}
        for seat in await self.confirmed_seats(db, showtime_id):
            states[seat] = "occupied"
        return states


availability_service = SeatAvailabilityService()
