"""
Ticket rendering (QR code, PDF) and entrance validation
"""

import base64
import json
import logging
from io import BytesIO
from typing import Any, Dict

import qrcode
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.pagesizes import A6
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Image
from reportlab.graphics.barcode import code128
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cinebook.core.clock import as_utc
from cinebook.core.database import DatabaseManager, db_manager
from cinebook.core.exceptions import BookingNotConfirmedError, BookingNotFoundError, NotOwnerError
from cinebook.models.booking import Booking, BookingStatus
from cinebook.models.showtime import Showtime
from cinebook.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)


def qr_payload(booking: Booking) -> Dict[str, Any]:
    """Data encoded in the ticket QR code"""
    showtime = booking.showtime
    return {
        "booking_id": str(booking.id),
        "ticket_number": booking.ticket_number,
        "movie": showtime.movie.title if showtime and showtime.movie else None,
        "starts_at": as_utc(showtime.starts_at).isoformat() if showtime else None,
        "room": showtime.room.name if showtime and showtime.room else None,
        "seats": list(booking.seats or []),
    }


class TicketService:
    """Generates ticket artifacts for confirmed bookings"""

    def __init__(self, database: DatabaseManager = None, notifier: EmailService = None, qr_size: int = 300):
        self.db_manager = database or db_manager
        self.notifier = notifier or email_service
        self.qr_size = qr_size

    def qr_png(self, booking: Booking) -> bytes:
        """Generate QR code PNG for ticket validation"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(json.dumps(qr_payload(booking)))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        if self.qr_size != img.size[0]:
            img = img.resize((self.qr_size, self.qr_size), PILImage.LANCZOS)

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def qr_data_url(self, booking: Booking) -> str:
        encoded = base64.b64encode(self.qr_png(booking)).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    async def _owned_booking(self, db: AsyncSession, booking_id: Any, user_id: Any) -> Booking:
        result = await db.execute(
            select(Booking)
            .options(
                joinedload(Booking.showtime).joinedload(Showtime.movie),
                joinedload(Booking.showtime).joinedload(Showtime.room),
                joinedload(Booking.user),
                joinedload(Booking.invoice),
            )
            .where(Booking.id == booking_id)
        )
        booking = result.unique().scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(booking_id)
        if booking.user_id != user_id:
            raise NotOwnerError(booking_id)
        return booking

    async def qr_code(self, db: AsyncSession, booking_id: Any, user_id: Any) -> str:
        """
        QR data URL for a booking, generated and stored on first request
        """
        booking = await self._owned_booking(db, booking_id, user_id)
        if booking.qr_code:
            return booking.qr_code

        data_url = self.qr_data_url(booking)
        async with self.db_manager.transaction(db):
            booking = await self._owned_booking(db, booking_id, user_id)
            if not booking.qr_code:
                booking.qr_code = data_url
        logger.info(f"Stored QR code for booking {booking.ticket_number}")
        return booking.qr_code

    def render_pdf(self, booking: Booking) -> bytes:
        """Printable ticket with booking details and the QR code"""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A6,
            rightMargin=18,
            leftMargin=18,
            topMargin=18,
            bottomMargin=18,
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "TicketTitle",
            parent=styles["Heading1"],
            fontSize=16,
            textColor=colors.HexColor("#2c3e50"),
            alignment=1
        )
        small_style = ParagraphStyle(
            "Small",
            parent=styles["Normal"],
            fontSize=7,
            textColor=colors.grey,
            alignment=1
        )

        payload = qr_payload(booking)
        elements = [
            Paragraph(payload["movie"] or "Movie ticket", title_style),
            Spacer(1, 0.1 * inch),
        ]

        starts_at = as_utc(booking.showtime.starts_at)
        ticket_data = [
            ["Ticket:", booking.ticket_number],
            ["Date:", starts_at.strftime("%Y-%m-%d")],
            ["Time:", starts_at.strftime("%H:%M UTC")],
            ["Room:", payload["room"] or "-"],
            ["Seats:", ", ".join(payload["seats"])],
            ["Total:", str(booking.total_price)],
        ]
        ticket_table = Table(ticket_data, colWidths=[0.8 * inch, 2.4 * inch])
        ticket_table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#ecf0f1")),
        ]))
        elements.append(ticket_table)
        elements.append(Spacer(1, 0.1 * inch))

        elements.append(Image(BytesIO(self.qr_png(booking)), width=1.6 * inch, height=1.6 * inch))
        barcode_value = booking.ticket_number.replace("-", "")[-12:]
        elements.append(code128.Code128(barcode_value, barHeight=0.3 * inch, barWidth=0.8))
        elements.append(Paragraph("Present this code at the entrance", small_style))

        doc.build(elements)
        return buffer.getvalue()

    async def pdf(self, db: AsyncSession, booking_id: Any, user_id: Any) -> bytes:
        booking = await self._owned_booking(db, booking_id, user_id)
        return self.render_pdf(booking)

    async def send_email(self, db: AsyncSession, booking_id: Any, user_id: Any) -> bool:
        """Send the ticket email again, QR code attached"""
        booking = await self._owned_booking(db, booking_id, user_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise BookingNotConfirmedError(booking.id, booking.status.value)

        sent = await self.notifier.send_ticket_email(booking, self.qr_png(booking))
        if not sent:
            logger.warning(f"Ticket email for booking {booking.ticket_number} was not sent")
        return sent

    async def validate(self, db: AsyncSession, ticket_number: str) -> Dict[str, Any]:
        """Entrance check by ticket number"""
        result = await db.execute(
            select(Booking)
            .options(
                joinedload(Booking.showtime).joinedload(Showtime.movie),
                joinedload(Booking.showtime).joinedload(Showtime.room),
            )
            .where(Booking.ticket_number == (ticket_number or "").strip())
        )
        booking = result.unique().scalar_one_or_none()

        if not booking:
            return {"valid": False, "reason": "not_found"}
        if booking.status == BookingStatus.CANCELLED:
            return {"valid": False, "reason": "cancelled", "ticket_number": booking.ticket_number}
        if booking.status != BookingStatus.CONFIRMED:
            return {"valid": False, "reason": booking.status.value, "ticket_number": booking.ticket_number}

        return {"valid": True, "booking": qr_payload(booking)}


ticket_service = TicketService()
