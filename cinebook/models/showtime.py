"""
Showtime model
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel


class ShowtimeStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class AudioType(str, enum.Enum):
    ORIGINAL = "original"
    DUBBED = "dubbed"
    SUBTITLED = "subtitled"


class ScreenFormat(str, enum.Enum):
    TWO_D = "2D"
    THREE_D = "3D"
    IMAX = "IMAX"
    FOUR_DX = "4DX"


BOOKABLE_STATUSES = (ShowtimeStatus.SCHEDULED, ShowtimeStatus.ACTIVE)


class Showtime(BaseModel):
    """
    A screening of a movie in a room.

    ``seats_available`` is only decremented by confirmed bookings and only
    incremented by cancellations, always through guarded UPDATE statements.
    """
    __tablename__ = "showtimes"
    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_showtimes_seats_available_non_negative"),
    )

    movie_id = Column(Uuid(as_uuid=True), ForeignKey("movies.id"), nullable=False, index=True)
    room_id = Column(Uuid(as_uuid=True), ForeignKey("rooms.id"), nullable=False, index=True)
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id"), nullable=False, index=True)
    room_type_id = Column(Uuid(as_uuid=True), ForeignKey("room_types.id"), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    audio_type = Column(Enum(AudioType), default=AudioType.SUBTITLED, nullable=False)
    format = Column(Enum(ScreenFormat), default=ScreenFormat.TWO_D, nullable=False)
    seats_available = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(ShowtimeStatus),
        default=ShowtimeStatus.SCHEDULED,
        nullable=False,
        index=True
    )

    # Relationships
    movie = relationship("Movie", back_populates="showtimes")
    room = relationship("Room", back_populates="showtimes")
    branch = relationship("Branch")
    room_type = relationship("RoomType")
    bookings = relationship("Booking", back_populates="showtime")
    reservations = relationship("SeatReservation", back_populates="showtime")

    @property
    def is_bookable(self) -> bool:
        return self.status in BOOKABLE_STATUSES

    def __repr__(self):
        return f"<Showtime(id={self.id}, starts_at={self.starts_at}, status={self.status}, available={self.seats_available})>"
