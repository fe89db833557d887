"""
Room, RoomType and SeatType models
"""

from sqlalchemy import Column, String, Integer, Numeric, Float, ForeignKey, Uuid, Text
from sqlalchemy.orm import relationship

from cinebook.models.base import BaseModel, JSONType


class RoomType(BaseModel):
    """
    Room category (standard, VIP, IMAX...) carrying the base ticket price
    """
    __tablename__ = "room_types"

    name = Column(String(100), unique=True, nullable=False)
    code = Column(String(20), unique=True, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    description = Column(Text)

    rooms = relationship("Room", back_populates="room_type")

    def __repr__(self):
        return f"<RoomType(code={self.code}, base_price={self.base_price})>"


class SeatType(BaseModel):
    """
    Seat category referenced by code from the room seat map
    """
    __tablename__ = "seat_types"

    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price_multiplier = Column(Float, default=1.0, nullable=False)

    def __repr__(self):
        return f"<SeatType(code={self.code}, multiplier={self.price_multiplier})>"


class Room(BaseModel):
    """
    Screening room with a static seat layout.

    ``seat_map`` maps a seat identifier to its type and nominal price, e.g.
    ``{"A1": {"type": "standard", "price": 10.0}}``.
    """
    __tablename__ = "rooms"

    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False)
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id"), nullable=False, index=True)
    room_type_id = Column(Uuid(as_uuid=True), ForeignKey("room_types.id"), nullable=False)
    seat_map = Column(JSONType, default=dict, nullable=False)

    # Relationships
    branch = relationship("Branch", back_populates="rooms")
    room_type = relationship("RoomType", back_populates="rooms")
    showtimes = relationship("Showtime", back_populates="room")

    def __repr__(self):
        return f"<Room(id={self.id}, name={self.name}, capacity={self.capacity})>"
