"""
Booking engine: atomic purchase and cancellation of showtime seats.

Purchase and cancel run inside the showtime's critical section and a single
database transaction with the showtime row locked. Notifications go out only
after commit and never affect the outcome.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging
import secrets
import string
import time

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cinebook.config import settings
from cinebook.core.clock import as_utc, utcnow
from cinebook.core.database import DatabaseManager, db_manager
from cinebook.core.exceptions import (
    AlreadyCancelledError,
    BookingNotCancellableError,
    BookingNotFoundError,
    BookingTransactionError,
    CinebookException,
    InsufficientSeatsError,
    InvalidSeatError,
    MinimumPurchaseNotMetError,
    NotFoundError,
    NotOwnerError,
    PromotionNotFoundError,
    SeatConflictError,
    ShowtimeNotBookableError,
    TooLateToCancelError,
    ValidationError,
)
from cinebook.core.locks import showtime_lock
from cinebook.core.logging import LoggerAdapter
from cinebook.core.metrics import metrics_collector
from cinebook.core.money import ZERO, to_money
from cinebook.models.booking import Booking, BookingStatus
from cinebook.models.invoice import Invoice, InvoiceStatus, PaymentMethod
from cinebook.models.room import Room
from cinebook.models.seat_reservation import SeatReservation
from cinebook.models.showtime import Showtime
from cinebook.models.user import User
from cinebook.services.availability_service import (
    Holder,
    SeatAvailabilityService,
    availability_service,
    get_showtime,
)
from cinebook.services.email_service import EmailService, email_service
from cinebook.services.hold_service import normalize_seats
from cinebook.services.pricing_service import PriceQuote, PricingResolver, pricing_resolver
from cinebook.services.promotion_service import PromotionResolver, promotion_resolver
from cinebook.services.seat_map import SeatMap
from cinebook.services.ticket_service import TicketService, ticket_service

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase


def _random_base36(length: int = 9) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def generate_ticket_number() -> str:
    """TKT-<epoch ms>-<9 base36 chars>"""
    return f"TKT-{int(time.time() * 1000)}-{_random_base36()}"


def generate_invoice_number() -> str:
    """INV-<epoch ms>-<9 upper-case base36 chars>"""
    return f"INV-{int(time.time() * 1000)}-{_random_base36().upper()}"


def format_booking(booking: Booking) -> Dict[str, Any]:
    """Format booking for API response"""
    showtime = booking.showtime
    data = {
        "id": str(booking.id),
        "ticket_number": booking.ticket_number,
        "showtime_id": str(booking.showtime_id),
        "user_id": str(booking.user_id),
        "seats": list(booking.seats or []),
        "subtotal": str(to_money(booking.subtotal)),
        "discount_amount": str(to_money(booking.discount_amount or 0)),
        "total_price": str(to_money(booking.total_price)),
        "status": booking.status.value,
        "promotion_id": str(booking.promotion_id) if booking.promotion_id else None,
        "invoice_id": str(booking.invoice_id) if booking.invoice_id else None,
        "cancelled_at": as_utc(booking.cancelled_at).isoformat() if booking.cancelled_at else None,
        "created_at": as_utc(booking.created_at).isoformat() if booking.created_at else None,
    }
    if showtime is not None:
        data["showtime"] = {
            "id": str(showtime.id),
            "starts_at": as_utc(showtime.starts_at).isoformat(),
            "movie_title": showtime.movie.title if showtime.movie else None,
            "room_name": showtime.room.name if showtime.room else None,
        }
    return data


def format_invoice(invoice: Invoice) -> Dict[str, Any]:
    return {
        "id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "subtotal": str(to_money(invoice.subtotal)),
        "discount_amount": str(to_money(invoice.discount_amount or 0)),
        "tax_amount": str(to_money(invoice.tax_amount)),
        "total_amount": str(to_money(invoice.total_amount)),
        "status": invoice.status.value,
        "payment_method": invoice.payment_method.value if invoice.payment_method else None,
        "payment_date": as_utc(invoice.payment_date).isoformat() if invoice.payment_date else None,
    }


@dataclass
class PurchaseResult:
    booking: Booking
    invoice: Invoice
    quote: PriceQuote
    notifications: Dict[str, bool] = field(default_factory=lambda: {
        "invoice_email": False,
        "ticket_email": False,
    })
    promotion_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking": format_booking(self.booking),
            "invoice": format_invoice(self.invoice),
            "pricing": self.quote.to_dict(),
            "notifications": dict(self.notifications),
            "promotion_error": self.promotion_error,
        }


class BookingEngine:
    """
    Purchases and cancellations with all-or-nothing persistence
    """

    def __init__(
        self,
        availability: Optional[SeatAvailabilityService] = None,
        pricing: Optional[PricingResolver] = None,
        promotions: Optional[PromotionResolver] = None,
        notifier: Optional[EmailService] = None,
        tickets: Optional[TicketService] = None,
        database: Optional[DatabaseManager] = None,
        lock=None
    ):
        self.availability = availability or availability_service
        self.pricing = pricing or pricing_resolver
        self.promotions = promotions or promotion_resolver
        self.notifier = notifier or email_service
        self.tickets = tickets or ticket_service
        self.db_manager = database or db_manager
        self.lock = lock or showtime_lock
        self.tax_rate = Decimal(str(settings.TAX_RATE))
        self.logger = logging.getLogger(__name__)

    async def purchase(
        self,
        db: AsyncSession,
        showtime_id: Any,
        seats: List[str],
        holder: Holder,
        promotion_code: Optional[str] = None,
        payment_method: str = "card"
    ) -> PurchaseResult:
        """
        Confirm a booking for ``seats`` and issue its paid invoice.

        Seat conflicts are recomputed here; a hold only matters when it
        belongs to someone else.
        """
        seats = normalize_seats(seats)
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {payment_method}", field="payment_method")

        log = LoggerAdapter(self.logger, {"showtime_id": showtime_id, "holder": holder.key})
        log.info(f"Starting purchase of {len(seats)} seat(s): {seats}")

        async with metrics_collector.track_booking_operation("purchase"):
            try:
                async with self.lock.hold(showtime_id):
                    async with self.db_manager.transaction(db):
                        result = await self._purchase_in_transaction(
                            db, showtime_id, seats, holder, promotion_code, method, log
                        )
            except CinebookException:
                raise
            except Exception as e:
                log.exception(f"Unexpected purchase failure: {e}")
                raise BookingTransactionError() from e

        log.info(
            f"Booking {result.booking.ticket_number} confirmed, "
            f"total {result.booking.total_price}"
        )
        await self._send_purchase_notifications(result, log)
        return result

    async def _purchase_in_transaction(
        self,
        db: AsyncSession,
        showtime_id: Any,
        seats: List[str],
        holder: Holder,
        promotion_code: Optional[str],
        method: PaymentMethod,
        log: LoggerAdapter
    ) -> PurchaseResult:
        showtime = await get_showtime(db, showtime_id, for_update=True)
        if not showtime.is_bookable:
            raise ShowtimeNotBookableError(showtime.id, showtime.status.value)

        if len(seats) > showtime.seats_available:
            raise InsufficientSeatsError(len(seats), showtime.seats_available)
        if len(seats) > settings.MAX_SEATS_PER_BOOKING:
            raise ValidationError(
                f"At most {settings.MAX_SEATS_PER_BOOKING} seats per booking", field="seats"
            )

        missing = SeatMap(showtime.room.seat_map).missing(seats)
        if missing:
            raise InvalidSeatError(missing)

        unavailable = await self.availability.unavailable_seats(db, showtime.id, exclude_holder=holder)
        conflicts = [seat for seat in seats if seat in unavailable]
        if conflicts:
            log.info(f"Seat conflict: {conflicts}")
            raise SeatConflictError(conflicts)

        user = await db.get(User, holder.user_id)
        if user is None:
            raise NotFoundError("User", holder.user_id)

        quote = await self.pricing.quote_or_fallback(db, showtime.id, seats)
        subtotal = quote.subtotal

        discount = ZERO
        promotion = None
        promotion_error = None
        if promotion_code:
            try:
                async with db.begin_nested():
                    applied = await self.promotions.apply(db, promotion_code, subtotal)
            except (PromotionNotFoundError, MinimumPurchaseNotMetError) as e:
                promotion_error = e.message
                log.info(f"Promotion {promotion_code} not applied: {e.message}")
            except Exception as e:
                # The sale goes ahead without the discount
                promotion_error = "Promotion could not be applied"
                log.warning(f"Promotion {promotion_code} lookup failed: {type(e).__name__}: {e}")
            else:
                if await self.promotions.redeem(db, applied.promotion.id):
                    promotion = applied.promotion
                    discount = applied.discount
                else:
                    promotion_error = "Promotion usage limit reached"

        tax = to_money(subtotal * self.tax_rate)
        total = to_money((subtotal - discount) * (Decimal("1") + self.tax_rate))
        now = utcnow()

        invoice = Invoice(
            invoice_number=generate_invoice_number(),
            user_id=user.id,
            issue_date=now,
            subtotal=subtotal,
            discount_amount=discount,
            tax_amount=tax,
            total_amount=total,
            status=InvoiceStatus.PAID,
            payment_method=method,
            payment_date=now,
            customer_name=user.full_name,
            customer_email=user.email,
        )
        db.add(invoice)

        booking = Booking(
            showtime=showtime,
            user=user,
            invoice=invoice,
            promotion=promotion,
            seats=seats,
            subtotal=subtotal,
            discount_amount=discount,
            total_price=total,
            status=BookingStatus.CONFIRMED,
            ticket_number=generate_ticket_number(),
        )
        db.add(booking)

        decremented = await db.execute(
            update(Showtime)
            .where(Showtime.id == showtime.id, Showtime.seats_available >= len(seats))
            .values(seats_available=Showtime.seats_available - len(seats))
            .execution_options(synchronize_session=False)
        )
        if decremented.rowcount != 1:
            raise InsufficientSeatsError(len(seats), showtime.seats_available)

        await self._delete_overlapping_holds(db, showtime.id, seats)
        await db.flush()
        await db.refresh(showtime, ["seats_available"])

        return PurchaseResult(
            booking=booking,
            invoice=invoice,
            quote=quote,
            promotion_error=promotion_error,
        )

    async def _delete_overlapping_holds(self, db: AsyncSession, showtime_id: Any, seats: List[str]) -> int:
        """Remove every hold on this showtime touching a purchased seat, expired or not."""
        purchased = set(seats)
        result = await db.execute(
            select(SeatReservation.id, SeatReservation.seats).where(
                SeatReservation.showtime_id == showtime_id
            )
        )
        overlapping = [
            reservation_id
            for reservation_id, held in result.all()
            if purchased.intersection(held or [])
        ]
        if overlapping:
            await db.execute(
                delete(SeatReservation)
                .where(SeatReservation.id.in_(overlapping))
                .execution_options(synchronize_session=False)
            )
        return len(overlapping)

    async def _send_purchase_notifications(self, result: PurchaseResult, log: LoggerAdapter):
        try:
            result.notifications["invoice_email"] = bool(
                await self.notifier.send_invoice_email(result.invoice, result.booking)
            )
        except Exception as e:
            log.error(f"Invoice email failed: {e}")
        if not result.notifications["invoice_email"]:
            metrics_collector.record_notification_failure("invoice_email")

        try:
            qr_png = self.tickets.qr_png(result.booking)
            result.notifications["ticket_email"] = bool(
                await self.notifier.send_ticket_email(result.booking, qr_png)
            )
        except Exception as e:
            log.error(f"Ticket email failed: {e}")
        if not result.notifications["ticket_email"]:
            metrics_collector.record_notification_failure("ticket_email")

    async def _load_booking(self, db: AsyncSession, booking_id: Any, for_update: bool = False) -> Booking:
        stmt = (
            select(Booking)
            .options(
                joinedload(Booking.showtime).joinedload(Showtime.movie),
                joinedload(Booking.showtime).joinedload(Showtime.room).joinedload(Room.room_type),
                joinedload(Booking.invoice),
                joinedload(Booking.user),
            )
            .where(Booking.id == booking_id)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Booking)
        result = await db.execute(stmt)
        booking = result.unique().scalar_one_or_none()
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    async def cancel(self, db: AsyncSession, booking_id: Any, holder: Holder) -> Booking:
        """
        Cancel a confirmed booking, returning its seats and promotion use.

        Refused within ``CANCELLATION_WINDOW_MINUTES`` of the showtime start.
        """
        log = LoggerAdapter(self.logger, {"booking_id": booking_id, "holder": holder.key})
        window = settings.CANCELLATION_WINDOW_MINUTES

        async with metrics_collector.track_booking_operation("cancel"):
            booking = await self._load_booking(db, booking_id)
            if booking.user_id != holder.user_id:
                raise NotOwnerError(booking_id)
            showtime_id = booking.showtime_id

            try:
                async with self.lock.hold(showtime_id):
                    async with self.db_manager.transaction(db):
                        booking = await self._load_booking(db, booking_id, for_update=True)
                        showtime = await get_showtime(db, showtime_id, for_update=True)

                        if booking.status == BookingStatus.CANCELLED:
                            raise AlreadyCancelledError(booking.id)
                        if booking.status != BookingStatus.CONFIRMED:
                            raise BookingNotCancellableError(booking.id, booking.status.value)
                        starts_at = as_utc(showtime.starts_at)
                        if starts_at - utcnow() < timedelta(minutes=window):
                            raise TooLateToCancelError(starts_at, window)

                        now = utcnow()
                        booking.status = BookingStatus.CANCELLED
                        booking.cancelled_at = now
                        if booking.invoice is not None:
                            booking.invoice.status = InvoiceStatus.CANCELLED

                        await self._restore_seats(db, showtime, len(booking.seats or []), log)
                        if booking.promotion_id:
                            await self.promotions.restore(db, booking.promotion_id)

                        await db.flush()
                        await db.refresh(showtime, ["seats_available"])
            except CinebookException:
                raise
            except Exception as e:
                log.exception(f"Unexpected cancellation failure: {e}")
                raise BookingTransactionError("Booking could not be cancelled") from e

        log.info(f"Booking {booking.ticket_number} cancelled")

        try:
            sent = await self.notifier.send_cancellation_email(booking)
        except Exception as e:
            log.error(f"Cancellation email failed: {e}")
            sent = False
        if not sent:
            metrics_collector.record_notification_failure("cancellation_email")

        return booking

    async def _restore_seats(self, db: AsyncSession, showtime: Showtime, count: int, log: LoggerAdapter):
        capacity = showtime.room.capacity
        result = await db.execute(
            update(Showtime)
            .where(Showtime.id == showtime.id, Showtime.seats_available + count <= capacity)
            .values(seats_available=Showtime.seats_available + count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            log.warning(f"Seat counter would exceed capacity {capacity}, clamping")
            await db.execute(
                update(Showtime)
                .where(Showtime.id == showtime.id)
                .values(seats_available=capacity)
                .execution_options(synchronize_session=False)
            )

    async def list_for_user(self, db: AsyncSession, user_id: Any) -> List[Booking]:
        result = await db.execute(
            select(Booking)
            .options(
                joinedload(Booking.showtime).joinedload(Showtime.movie),
                joinedload(Booking.showtime).joinedload(Showtime.room),
            )
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(result.unique().scalars())

    async def get_for_user(self, db: AsyncSession, booking_id: Any, user_id: Any) -> Booking:
        booking = await self._load_booking(db, booking_id)
        if booking.user_id != user_id:
            raise NotOwnerError(booking_id)
        return booking


booking_engine = BookingEngine()
