"""
Movie and Branch reference models
"""

from sqlalchemy import Column, String, Integer, Text
from sqlalchemy.orm import relationship

from cinebook.models.base import BaseModel


class Movie(BaseModel):
    __tablename__ = "movies"

    title = Column(String(255), nullable=False, index=True)
    genre = Column(String(100))
    duration_minutes = Column(Integer)

    showtimes = relationship("Showtime", back_populates="movie")

    def __repr__(self):
        return f"<Movie(id={self.id}, title={self.title})>"


class Branch(BaseModel):
    """
    A cinema location owning rooms and showtimes
    """
    __tablename__ = "branches"

    name = Column(String(255), nullable=False)
    address = Column(Text)
    city = Column(String(100), index=True)

    rooms = relationship("Room", back_populates="branch")

    def __repr__(self):
        return f"<Branch(id={self.id}, name={self.name})>"
