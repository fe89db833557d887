"""
Email Service with SendGrid Integration
Invoice, ticket and cancellation notifications for bookings
"""

import asyncio
import base64
import logging
from typing import Dict, List, Optional

from jinja2 import DictLoader, Environment, TemplateNotFound, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Attachment, FileContent, FileName, FileType, Disposition

from cinebook.config import settings
from cinebook.core.clock import as_utc
from cinebook.models.booking import Booking
from cinebook.models.invoice import Invoice

logger = logging.getLogger(__name__)

TEMPLATES = {
    "layout.html": """<!DOCTYPE html>
<html>
<body>
  <div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
    {% block content %}{% endblock %}
    <p style="color: #888; font-size: 12px;">{{ app_name }}</p>
  </div>
</body>
</html>""",

    "invoice.html": """{% extends "layout.html" %}
{% block content %}
<h2>Invoice {{ invoice_number }}</h2>
<p>Hi {{ customer_name }}, thank you for your purchase.</p>
<table style="width: 100%; border-collapse: collapse;">
  <tr><td>{{ movie_title }} ({{ seats }})</td><td style="text-align: right;">{{ subtotal }}</td></tr>
  {% if discount != "0.00" %}
  <tr><td>Discount</td><td style="text-align: right;">-{{ discount }}</td></tr>
  {% endif %}
  <tr><td>Tax</td><td style="text-align: right;">{{ tax }}</td></tr>
  <tr><td><strong>Total</strong></td><td style="text-align: right;"><strong>{{ total }}</strong></td></tr>
</table>
<p>Paid by {{ payment_method }} on {{ payment_date }}.</p>
{% endblock %}""",

    "ticket.html": """{% extends "layout.html" %}
{% block content %}
<h2>Your tickets for {{ movie_title }}</h2>
<div style="border: 2px dashed #2c3e50; padding: 15px; margin: 20px 0;">
  <p><strong>Ticket:</strong> {{ ticket_number }}</p>
  <p><strong>When:</strong> {{ show_date }} {{ show_time }}</p>
  <p><strong>Room:</strong> {{ room_name }}</p>
  <p><strong>Seats:</strong> {{ seats }}</p>
</div>
<p>Your QR code is attached. Show it at the entrance.</p>
<p><a href="{{ ticket_url }}">View ticket online</a></p>
{% endblock %}""",

    "cancellation.html": """{% extends "layout.html" %}
{% block content %}
<h2>Booking {{ ticket_number }} cancelled</h2>
<p>{{ movie_title }}, {{ show_date }} {{ show_time }}, seats {{ seats }}.</p>
<p>Refund amount: <strong>{{ refund_amount }}</strong></p>
{% endblock %}""",
}


class EmailService:
    """Service for handling email operations"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.client = SendGridAPIClient(api_key) if api_key else None
        self.from_email = from_email or settings.FROM_EMAIL
        self.templates = Environment(loader=DictLoader(TEMPLATES), autoescape=select_autoescape(["html"]))

    def render(self, template_name: str, context: Dict) -> str:
        template = self.templates.get_template(f"{template_name}.html")
        return template.render(app_name=settings.APP_NAME, **context)

    async def send_email(
        self,
        to_email: Optional[str],
        subject: str,
        template_name: str,
        context: Dict,
        attachments: Optional[List[Dict]] = None
    ) -> bool:
        """Send an email using SendGrid; False when skipped or rejected"""
        if self.client is None:
            logger.warning(f"SendGrid not configured, skipping '{subject}' to {to_email}")
            return False
        if not to_email:
            logger.warning(f"No recipient for '{subject}'")
            return False

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=self.render(template_name, context)
            )
            for attachment_data in attachments or []:
                message.add_attachment(Attachment(
                    FileContent(attachment_data["content"]),
                    FileName(attachment_data["filename"]),
                    FileType(attachment_data["type"]),
                    Disposition("attachment")
                ))

            # SendGrid's client is blocking
            response = await asyncio.to_thread(self.client.send, message)
        except TemplateNotFound:
            logger.error(f"Template {template_name} not found")
            return False
        except Exception as e:
            logger.error(f"Error sending '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to_email}: {response.status_code}")
        return response.status_code in (200, 201, 202)

    @staticmethod
    def _show_context(booking: Booking) -> Dict:
        showtime = booking.showtime
        starts_at = as_utc(showtime.starts_at) if showtime else None
        return {
            "ticket_number": booking.ticket_number,
            "movie_title": showtime.movie.title if showtime and showtime.movie else "",
            "room_name": showtime.room.name if showtime and showtime.room else "",
            "show_date": starts_at.strftime("%Y-%m-%d") if starts_at else "",
            "show_time": starts_at.strftime("%H:%M UTC") if starts_at else "",
            "seats": ", ".join(booking.seats or []),
        }

    @staticmethod
    def _recipient(booking: Booking) -> Optional[str]:
        if booking.invoice is not None and booking.invoice.customer_email:
            return booking.invoice.customer_email
        return booking.user.email if booking.user is not None else None

    async def send_invoice_email(self, invoice: Invoice, booking: Booking) -> bool:
        context = self._show_context(booking)
        context.update({
            "invoice_number": invoice.invoice_number,
            "customer_name": invoice.customer_name or "",
            "subtotal": str(invoice.subtotal),
            "discount": str(invoice.discount_amount),
            "tax": str(invoice.tax_amount),
            "total": str(invoice.total_amount),
            "payment_method": invoice.payment_method.value if invoice.payment_method else "",
            "payment_date": as_utc(invoice.payment_date).strftime("%Y-%m-%d %H:%M UTC") if invoice.payment_date else "",
        })
        return await self.send_email(
            to_email=invoice.customer_email,
            subject=f"Invoice {invoice.invoice_number}",
            template_name="invoice",
            context=context
        )

    async def send_ticket_email(self, booking: Booking, qr_png: Optional[bytes] = None) -> bool:
        context = self._show_context(booking)
        context["ticket_url"] = f"{settings.FRONTEND_URL}/tickets/{booking.id}"

        attachments = []
        if qr_png:
            attachments.append({
                "content": base64.b64encode(qr_png).decode(),
                "filename": f"ticket_{booking.ticket_number}.png",
                "type": "image/png"
            })

        return await self.send_email(
            to_email=self._recipient(booking),
            subject=f"Your tickets for {context['movie_title']}",
            template_name="ticket",
            context=context,
            attachments=attachments
        )

    async def send_cancellation_email(self, booking: Booking) -> bool:
        context = self._show_context(booking)
        context["refund_amount"] = str(booking.total_price)
        return await self.send_email(
            to_email=self._recipient(booking),
            subject=f"Booking {booking.ticket_number} cancelled",
            template_name="cancellation",
            context=context
        )


email_service = EmailService()
