"""
SeatReservation model (temporary seat holds)
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Uuid, Index
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel, JSONType


class ReservationStatus(str, enum.Enum):
    RESERVED = "reserved"
    EXPIRED = "expired"


class SeatReservation(BaseModel):
    """
    Advisory, TTL-bounded hold on a set of seats.

    A hold only counts while ``status`` is RESERVED and ``expires_at`` is in
    the future; expired rows are ignored until the sweeper deletes them.
    """
    __tablename__ = "seat_reservations"
    __table_args__ = (
        Index("ix_seat_reservations_showtime_status", "showtime_id", "status"),
    )

    showtime_id = Column(Uuid(as_uuid=True), ForeignKey("showtimes.id"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    session_id = Column(String(255), nullable=False, index=True)
    seats = Column(JSONType, nullable=False)
    status = Column(
        Enum(ReservationStatus),
        default=ReservationStatus.RESERVED,
        nullable=False
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    showtime = relationship("Showtime", back_populates="reservations")

    def __repr__(self):
        return f"<SeatReservation(id={self.id}, showtime_id={self.showtime_id}, seats={self.seats}, expires_at={self.expires_at})>"
