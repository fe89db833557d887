"""
PricingRule model
"""

from sqlalchemy import Column, String, Integer, Float, Numeric, Boolean, DateTime, Time, ForeignKey, Enum, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel
from cinebook.models.showtime import AudioType, ScreenFormat


class PricingRuleType(str, enum.Enum):
    TIME_BASED = "time_based"
    DAY_BASED = "day_based"
    SPECIAL = "special"
    FORMAT_BASED = "format_based"


class PricingRule(BaseModel):
    """
    Price adjustment for a room type, optionally narrowed by seat type, audio
    type, format, weekday (0 = Sunday) and a time-of-day window.
    """
    __tablename__ = "pricing_rules"
    __table_args__ = (
        CheckConstraint("day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
                        name="ck_pricing_rules_day_of_week"),
    )

    name = Column(String(255), nullable=False)
    rule_type = Column(Enum(PricingRuleType), nullable=False)
    room_type_id = Column(Uuid(as_uuid=True), ForeignKey("room_types.id"), nullable=False, index=True)
    seat_type_code = Column(String(20))
    audio_type = Column(Enum(AudioType))
    format = Column(Enum(ScreenFormat))
    day_of_week = Column(Integer)
    start_time = Column(Time)
    end_time = Column(Time)
    multiplier = Column(Float, default=1.0, nullable=False)
    fixed_price = Column(Numeric(10, 2))
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    valid_from = Column(DateTime(timezone=True))
    valid_until = Column(DateTime(timezone=True))

    room_type = relationship("RoomType")

    def __repr__(self):
        return f"<PricingRule(id={self.id}, name={self.name}, multiplier={self.multiplier}, fixed={self.fixed_price})>"
