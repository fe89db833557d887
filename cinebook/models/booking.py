"""
Booking model
"""

from sqlalchemy import Column, String, Text, ForeignKey, Enum, Numeric, DateTime, Uuid
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel, JSONType


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Booking(BaseModel):
    """
    Booking model for purchased seats of a showtime
    """
    __tablename__ = "bookings"

    showtime_id = Column(Uuid(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True, index=True)
    promotion_id = Column(Uuid(as_uuid=True), ForeignKey("promotions.id"), nullable=True)
    seats = Column(JSONType, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(BookingStatus),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True
    )
    ticket_number = Column(String(40), unique=True, nullable=False, index=True)
    qr_code = Column(Text)  # PNG data URL, generated on first request
    cancelled_at = Column(DateTime(timezone=True))

    # Relationships
    showtime = relationship("Showtime", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
    invoice = relationship("Invoice", back_populates="bookings")
    promotion = relationship("Promotion", back_populates="bookings")

    def __repr__(self):
        return f"<Booking(id={self.id}, ticket={self.ticket_number}, status={self.status}, total={self.total_price})>"
