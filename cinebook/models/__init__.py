"""
Database models
"""

from cinebook.models.user import User
from cinebook.models.movie import Movie, Branch
from cinebook.models.room import Room, RoomType, SeatType
from cinebook.models.showtime import Showtime, ShowtimeStatus, AudioType, ScreenFormat
from cinebook.models.seat_reservation import SeatReservation, ReservationStatus
from cinebook.models.booking import Booking, BookingStatus
from cinebook.models.invoice import Invoice, InvoiceStatus, PaymentMethod
from cinebook.models.pricing_rule import PricingRule, PricingRuleType
from cinebook.models.promotion import Promotion, DiscountType

__all__ = [
    "User",
    "Movie",
    "Branch",
    "Room",
    "RoomType",
    "SeatType",
    "Showtime",
    "ShowtimeStatus",
    "AudioType",
    "ScreenFormat",
    "SeatReservation",
    "ReservationStatus",
    "Booking",
    "BookingStatus",
    "Invoice",
    "InvoiceStatus",
    "PaymentMethod",
    "PricingRule",
    "PricingRuleType",
    "Promotion",
    "DiscountType",
]
