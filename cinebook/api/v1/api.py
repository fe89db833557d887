"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from cinebook.api.v1.endpoints import (
    bookings,
    seats,
    pricing,
    promotions,
    invoices,
    health
)

api_router = APIRouter()

# Include all routers
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(seats.router, prefix="/seats", tags=["seats"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(promotions.router, prefix="/promotions", tags=["promotions"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
