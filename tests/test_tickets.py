"""
Ticket artifacts and entrance validation tests
"""

import base64
import json

import pytest

from cinebook.core.exceptions import NotOwnerError
from cinebook.models.booking import Booking
from cinebook.services.availability_service import Holder
from cinebook.services.ticket_service import TicketService, qr_payload


@pytest.fixture
def tickets():
    return TicketService(qr_size=200)


@pytest.mark.unit
@pytest.mark.asyncio
class TestTicketArtifacts:
    """QR code and PDF generation"""

    async def test_qr_payload(self, db_session, engine, cinema):
        result = await engine.purchase(db_session, cinema.showtime.id, ["C3", "C4"], Holder(cinema.user.id))

        payload = qr_payload(result.booking)
        assert payload["ticket_number"] == result.booking.ticket_number
        assert payload["movie"] == "The Long Night"
        assert payload["room"] == "Room 1"
        assert payload["seats"] == ["C3", "C4"]
        json.dumps(payload)

    async def test_qr_png(self, db_session, engine, cinema, tickets):
        result = await engine.purchase(db_session, cinema.showtime.id, ["C5"], Holder(cinema.user.id))

        png = tickets.qr_png(result.booking)
        assert png.startswith(b"\x89PNG")

    async def test_qr_code_is_stored_on_first_request(self, db_session, engine, cinema, tickets, session_factory):
        result = await engine.purchase(db_session, cinema.showtime.id, ["C6"], Holder(cinema.user.id))

        data_url = await tickets.qr_code(db_session, result.booking.id, cinema.user.id)
        assert data_url.startswith("data:image/png;base64,")
        base64.b64decode(data_url.split(",", 1)[1])

        async with session_factory() as session:
            stored = await session.get(Booking, result.booking.id)
            assert stored.qr_code == data_url

        assert await tickets.qr_code(db_session, result.booking.id, cinema.user.id) == data_url

    async def test_qr_code_requires_owner(self, db_session, engine, cinema, tickets):
        result = await engine.purchase(db_session, cinema.showtime.id, ["C7"], Holder(cinema.user.id))

        with pytest.raises(NotOwnerError):
            await tickets.qr_code(db_session, result.booking.id, cinema.other_user.id)

    async def test_pdf(self, db_session, engine, cinema, tickets):
        result = await engine.purchase(db_session, cinema.showtime.id, ["C8"], Holder(cinema.user.id))

        pdf = await tickets.pdf(db_session, result.booking.id, cinema.user.id)
        assert pdf.startswith(b"%PDF")


@pytest.mark.unit
@pytest.mark.asyncio
class TestTicketValidation:
    """TicketService.validate"""

    async def test_unknown_ticket(self, db_session, tickets):
        assert await tickets.validate(db_session, "TKT-0-nothing") == {"valid": False, "reason": "not_found"}

    async def test_valid_ticket(self, db_session, engine, cinema, tickets):
        result = await engine.purchase(db_session, cinema.showtime.id, ["D9"], Holder(cinema.user.id))

        outcome = await tickets.validate(db_session, result.booking.ticket_number)
        assert outcome["valid"] is True
        assert outcome["booking"]["seats"] == ["D9"]

    async def test_cancelled_ticket(self, db_session, engine, cinema, tickets):
        result = await engine.purchase(db_session, cinema.showtime.id, ["D10"], Holder(cinema.user.id))
        await engine.cancel(db_session, result.booking.id, Holder(cinema.user.id))

        outcome = await tickets.validate(db_session, result.booking.ticket_number)
        assert outcome["valid"] is False
        assert outcome["reason"] == "cancelled"
