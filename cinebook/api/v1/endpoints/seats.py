"""
Seat map and temporary hold endpoints
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.clock import as_utc
from cinebook.core.database import get_session
from cinebook.core.security import get_current_user
from cinebook.models.user import User
from cinebook.schemas.seat import SeatHoldRequest, SeatReleaseRequest
from cinebook.services.availability_service import Holder, availability_service, get_showtime
from cinebook.services.hold_service import hold_manager
from cinebook.services.seat_map import SeatMap

router = APIRouter()


@router.get("/showtimes/{showtime_id}/seats")
async def get_seat_map(
    showtime_id: UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Seat layout of the showtime's room with each seat's current state
    """
    showtime = await get_showtime(db, showtime_id)
    states = await availability_service.seat_states(db, showtime.id)
    seat_map = SeatMap(showtime.room.seat_map)

    seats = [
        {
            "seat_id": seat_id,
            "type": info["type"],
            "price": info["price"],
            "status": states.get(seat_id, "available"),
        }
        for seat_id, info in seat_map.to_dict().items()
    ]
    return {
        "success": True,
        "message": "Seat map",
        "data": {
            "showtime_id": str(showtime.id),
            "starts_at": as_utc(showtime.starts_at).isoformat(),
            "capacity": showtime.room.capacity,
            "seats_available": showtime.seats_available,
            "seats": seats,
        },
    }


@router.api_route("/showtimes/{showtime_id}/seats/reserve", methods=["POST", "PATCH"])
async def reserve_seats(
    showtime_id: UUID,
    request: SeatHoldRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Temporarily hold seats while the customer checks out
    """
    reservation = await hold_manager.reserve(
        db,
        showtime_id,
        request.seats,
        Holder(user_id=current_user.id, session_id=request.session_id),
    )
    return {
        "success": True,
        "message": "Seats reserved",
        "data": {
            "reservation_id": str(reservation.id),
            "seats": list(reservation.seats),
            "expires_at": as_utc(reservation.expires_at).isoformat(),
        },
    }


@router.api_route("/showtimes/{showtime_id}/seats/release", methods=["POST", "PATCH"])
async def release_seats(
    showtime_id: UUID,
    request: Optional[SeatReleaseRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Release the caller's held seats
    """
    request = request or SeatReleaseRequest()
    released = await hold_manager.release(
        db,
        showtime_id,
        Holder(user_id=current_user.id, session_id=request.session_id),
        reservation_id=request.reservation_id,
    )
    return {"success": True, "message": "Seats released", "data": {"released": released}}
