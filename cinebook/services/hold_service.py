"""
Temporary seat holds (reserve / release / purge)
"""

from datetime import datetime, timedelta
from typing import Any, List, Optional
import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.config import settings
from cinebook.core.clock import utcnow
from cinebook.core.database import DatabaseManager, db_manager
from cinebook.core.exceptions import InvalidSeatError, SeatUnavailableError, ValidationError
from cinebook.core.locks import showtime_lock
from cinebook.core.logging import LoggerAdapter
from cinebook.core.metrics import metrics_collector
from cinebook.models.seat_reservation import SeatReservation, ReservationStatus
from cinebook.services.availability_service import (
    Holder,
    SeatAvailabilityService,
    availability_service,
    get_showtime,
)
from cinebook.services.seat_map import SeatMap

logger = logging.getLogger(__name__)


def normalize_seats(seats: List[str], max_seats: Optional[int] = None) -> List[str]:
    """Strip and upper-case seat ids, rejecting empty or duplicated lists."""
    cleaned = [str(seat).strip().upper() for seat in seats or []]
    if not cleaned or any(not seat for seat in cleaned):
        raise ValidationError("At least one seat is required", field="seats")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Duplicate seats are not allowed", field="seats")
    if max_seats and len(cleaned) > max_seats:
        raise ValidationError(f"At most {max_seats} seats per request", field="seats")
    return cleaned


class HoldManager:
    """
    Creates and releases advisory seat holds.

    Holds reduce visible availability for ``SEAT_HOLD_TTL_MINUTES`` but confer
    nothing at purchase time; the booking engine re-checks availability.
    """

    def __init__(
        self,
        availability: Optional[SeatAvailabilityService] = None,
        database: Optional[DatabaseManager] = None,
        lock=None,
        ttl: Optional[timedelta] = None
    ):
        self.availability = availability or availability_service
        self.db_manager = database or db_manager
        self.lock = lock or showtime_lock
        self.ttl = ttl or timedelta(minutes=settings.SEAT_HOLD_TTL_MINUTES)

    async def reserve(
        self,
        db: AsyncSession,
        showtime_id: Any,
        seats: List[str],
        holder: Holder
    ) -> SeatReservation:
        """
        Hold ``seats`` for ``holder``, replacing the holder's previous hold on
        this showtime.
        """
        seats = normalize_seats(seats, settings.MAX_SEATS_PER_BOOKING)
        log = LoggerAdapter(logger, {"showtime_id": showtime_id, "holder": holder.key})

        async with metrics_collector.track_booking_operation("reserve"):
            async with self.lock.hold(showtime_id):
                async with self.db_manager.transaction(db):
                    showtime = await get_showtime(db, showtime_id, for_update=True)

                    missing = SeatMap(showtime.room.seat_map).missing(seats)
                    if missing:
                        raise InvalidSeatError(missing)

                    now = utcnow()
                    # The holder's own hold is about to be replaced, so it never blocks
                    unavailable = await self.availability.unavailable_seats(
                        db, showtime.id, exclude_holder=holder, now=now
                    )
                    conflicts = [seat for seat in seats if seat in unavailable]
                    if conflicts:
                        log.info(f"Hold rejected, seats unavailable: {conflicts}")
                        raise SeatUnavailableError(conflicts)

                    await db.execute(
                        delete(SeatReservation)
                        .where(
                            SeatReservation.showtime_id == showtime.id,
                            SeatReservation.user_id == holder.user_id,
                            SeatReservation.session_id == holder.key
                        )
                        .execution_options(synchronize_session=False)
                    )

                    reservation = SeatReservation(
                        showtime_id=showtime.id,
                        user_id=holder.user_id,
                        session_id=holder.key,
                        seats=seats,
                        status=ReservationStatus.RESERVED,
                        expires_at=now + self.ttl
                    )
                    db.add(reservation)
                    await db.flush()

        log.info(f"Seats held until {reservation.expires_at.isoformat()}: {seats}")
        return reservation

    async def release(
        self,
        db: AsyncSession,
        showtime_id: Any,
        holder: Holder,
        reservation_id: Optional[Any] = None
    ) -> int:
        """
        Delete the holder's hold (or a specific reservation) for a showtime.

        Releasing nothing is not an error; returns the number of rows deleted.
        """
        stmt = delete(SeatReservation).where(SeatReservation.showtime_id == showtime_id)
        if reservation_id is not None:
            stmt = stmt.where(SeatReservation.id == reservation_id)
        else:
            stmt = stmt.where(SeatReservation.session_id == holder.key)
        stmt = stmt.where(SeatReservation.user_id == holder.user_id)

        async with self.db_manager.transaction(db):
            result = await db.execute(stmt.execution_options(synchronize_session=False))

        released = result.rowcount or 0
        logger.info(f"Released {released} hold(s) for showtime {showtime_id}, holder {holder.key}")
        return released

    async def purge_expired(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Delete holds whose TTL has passed."""
        now = now or utcnow()
        async with self.db_manager.transaction(db):
            result = await db.execute(
                delete(SeatReservation)
                .where(SeatReservation.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
        purged = result.rowcount or 0
        if purged:
            logger.info(f"Purged {purged} expired seat hold(s)")
        return purged


hold_manager = HoldManager()
