"""
API endpoints module
"""

from . import bookings, seats, pricing, promotions, invoices, health

__all__ = [
    "bookings",
    "seats",
    "pricing",
    "promotions",
    "invoices",
    "health"
]
