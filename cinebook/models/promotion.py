"""
Promotion model
"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, Text, Enum, CheckConstraint, Index, func
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    BOGO = "bogo"


class Promotion(BaseModel):
    """
    Discount code with an optional usage cap.

    ``used_count`` moves only through guarded UPDATE statements so it can
    never exceed ``usage_limit`` or drop below zero.
    """
    __tablename__ = "promotions"
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_promotions_used_count_non_negative"),
        CheckConstraint("usage_limit IS NULL OR used_count <= usage_limit",
                        name="ck_promotions_used_count_within_limit"),
    )

    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, index=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    min_purchase = Column(Numeric(10, 2))
    max_discount = Column(Numeric(10, 2))
    valid_from = Column(DateTime(timezone=True))
    valid_until = Column(DateTime(timezone=True), index=True)
    usage_limit = Column(Integer)
    used_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    description = Column(Text)

    bookings = relationship("Booking", back_populates="promotion")

    def __repr__(self):
        return f"<Promotion(code={self.code}, type={self.discount_type}, used={self.used_count}/{self.usage_limit})>"


# Codes are matched case-insensitively, so they must be unique that way too
Index("uq_promotions_code_upper", func.upper(Promotion.code), unique=True)
