"""
Booking endpoints: purchase, listing, cancellation and tickets
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.database import get_session
from cinebook.core.security import get_current_user
from cinebook.models.user import User
from cinebook.schemas.booking import BookingCreate, TicketValidateRequest
from cinebook.services.availability_service import Holder
from cinebook.services.booking_service import booking_engine, format_booking
from cinebook.services.ticket_service import ticket_service

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Purchase seats for a showtime
    """
    result = await booking_engine.purchase(
        db,
        booking_data.showtime_id,
        booking_data.seats,
        Holder(user_id=current_user.id, session_id=booking_data.session_id),
        promotion_code=booking_data.promotion_code,
        payment_method=booking_data.payment_method,
    )
    return {
        "success": True,
        "message": "Booking confirmed",
        "data": result.to_dict(),
    }


@router.get("")
async def get_user_bookings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get the current user's bookings, newest first
    """
    bookings = await booking_engine.list_for_user(db, current_user.id)
    return {
        "success": True,
        "message": f"{len(bookings)} booking(s)",
        "data": [format_booking(booking) for booking in bookings],
    }


@router.post("/tickets/validate")
async def validate_ticket(
    request: TicketValidateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Entrance validation by ticket number
    """
    result = await ticket_service.validate(db, request.ticket_number)
    return {
        "success": True,
        "message": "Ticket is valid" if result["valid"] else "Ticket is not valid",
        "data": result,
    }


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get booking details
    """
    booking = await booking_engine.get_for_user(db, booking_id, current_user.id)
    return {"success": True, "message": "Booking found", "data": format_booking(booking)}


@router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Cancel a booking at least an hour before the showtime
    """
    booking = await booking_engine.cancel(db, booking_id, Holder(user_id=current_user.id))
    return {"success": True, "message": "Booking cancelled", "data": format_booking(booking)}


@router.get("/{booking_id}/qr")
async def get_booking_qr(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    QR code for the booking as a PNG data URL
    """
    qr_code = await ticket_service.qr_code(db, booking_id, current_user.id)
    return {"success": True, "message": "QR code ready", "data": {"qr_code": qr_code}}


@router.get("/{booking_id}/ticket")
async def download_ticket(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Response:
    """
    Printable PDF ticket
    """
    pdf = await ticket_service.pdf(db, booking_id, current_user.id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{booking_id}.pdf"'}
    )


@router.post("/{booking_id}/send-ticket")
async def send_ticket_email(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Email the ticket again with its QR code attached
    """
    sent = await ticket_service.send_email(db, booking_id, current_user.id)
    return {
        "success": True,
        "message": "Ticket sent" if sent else "Ticket email could not be sent",
        "data": {"sent": sent},
    }
