"""
User model
"""

from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from cinebook.models.base import BaseModel


class User(BaseModel):
    """
    Customer account; authentication itself lives outside this service
    """
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    bookings = relationship("Booking", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
