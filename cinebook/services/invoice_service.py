"""
Customer access to invoices: listing, details, PDF and email
"""

import logging
from io import BytesIO
from typing import Any, Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cinebook.config import settings
from cinebook.core.clock import as_utc
from cinebook.core.exceptions import InvoiceNotFoundError, NotOwnerError
from cinebook.core.money import to_money
from cinebook.models.booking import Booking
from cinebook.models.invoice import Invoice
from cinebook.models.showtime import Showtime
from cinebook.services.booking_service import format_booking, format_invoice
from cinebook.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)


def format_invoice_detail(invoice: Invoice) -> Dict[str, Any]:
    data = format_invoice(invoice)
    data.update({
        "issue_date": as_utc(invoice.issue_date).isoformat() if invoice.issue_date else None,
        "customer_name": invoice.customer_name,
        "customer_email": invoice.customer_email,
        "bookings": [format_booking(booking) for booking in invoice.bookings],
    })
    return data


class InvoiceService:
    """Invoices belong to the user they were issued to"""

    def __init__(self, notifier: EmailService = None):
        self.notifier = notifier or email_service

    @staticmethod
    def _query():
        return select(Invoice).options(
            selectinload(Invoice.bookings).selectinload(Booking.showtime).selectinload(Showtime.movie),
            selectinload(Invoice.bookings).selectinload(Booking.showtime).selectinload(Showtime.room),
            selectinload(Invoice.bookings).selectinload(Booking.user),
            selectinload(Invoice.bookings).selectinload(Booking.invoice),
        )

    async def list_for_user(self, db: AsyncSession, user_id: Any) -> List[Invoice]:
        result = await db.execute(
            self._query()
            .where(Invoice.user_id == user_id)
            .order_by(Invoice.created_at.desc())
        )
        return list(result.scalars())

    async def get_for_user(self, db: AsyncSession, invoice_id: Any, user_id: Any) -> Invoice:
        result = await db.execute(self._query().where(Invoice.id == invoice_id))
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.user_id != user_id:
            raise NotOwnerError(invoice_id, resource="Invoice")
        return invoice

    def render_pdf(self, invoice: Invoice) -> bytes:
        """A4 invoice with one line per booking and the totals block"""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=36,
            leftMargin=36,
            topMargin=36,
            bottomMargin=36,
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=20,
            textColor=colors.HexColor("#2c3e50"),
        )

        elements = [
            Paragraph(settings.APP_NAME, title_style),
            Paragraph(f"Invoice {invoice.invoice_number}", styles["Heading2"]),
            Spacer(1, 0.2 * inch),
        ]

        header = [
            ["Issued:", as_utc(invoice.issue_date).strftime("%Y-%m-%d %H:%M UTC")],
            ["Customer:", invoice.customer_name or "-"],
            ["Email:", invoice.customer_email or "-"],
            ["Status:", invoice.status.value],
            ["Payment:", invoice.payment_method.value if invoice.payment_method else "-"],
        ]
        header_table = Table(header, colWidths=[1.2 * inch, 4 * inch])
        header_table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
        ]))
        elements.append(header_table)
        elements.append(Spacer(1, 0.3 * inch))

        lines = [["Ticket", "Movie", "Showtime", "Seats", "Amount"]]
        for booking in invoice.bookings:
            showtime = booking.showtime
            lines.append([
                booking.ticket_number,
                showtime.movie.title if showtime and showtime.movie else "-",
                as_utc(showtime.starts_at).strftime("%Y-%m-%d %H:%M") if showtime else "-",
                ", ".join(booking.seats or []),
                str(to_money(booking.subtotal)),
            ])
        lines_table = Table(lines, colWidths=[1.9 * inch, 1.7 * inch, 1.3 * inch, 1 * inch, 0.8 * inch])
        lines_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2c3e50")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
        ]))
        elements.append(lines_table)
        elements.append(Spacer(1, 0.3 * inch))

        totals = [
            ["Subtotal", str(to_money(invoice.subtotal))],
            ["Discount", str(to_money(invoice.discount_amount or 0))],
            ["Tax", str(to_money(invoice.tax_amount))],
            ["Total", str(to_money(invoice.total_amount))],
        ]
        totals_table = Table(totals, colWidths=[1.2 * inch, 1 * inch], hAlign="RIGHT")
        totals_table.setStyle(TableStyle([
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
        ]))
        elements.append(totals_table)

        doc.build(elements)
        return buffer.getvalue()

    async def pdf(self, db: AsyncSession, invoice_id: Any, user_id: Any) -> bytes:
        invoice = await self.get_for_user(db, invoice_id, user_id)
        return self.render_pdf(invoice)

    async def send_email(self, db: AsyncSession, invoice_id: Any, user_id: Any) -> bool:
        invoice = await self.get_for_user(db, invoice_id, user_id)
        if not invoice.bookings:
            logger.warning(f"Invoice {invoice.invoice_number} has no bookings to describe")
            return False
        sent = await self.notifier.send_invoice_email(invoice, invoice.bookings[0])
        if not sent:
            logger.warning(f"Invoice email {invoice.invoice_number} was not sent")
        return sent


invoice_service = InvoiceService()
