"""
Custom application exceptions
"""

from typing import Optional, Dict, Any, Iterable


class CinebookException(Exception):
    """Base exception for CineBook application"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(CinebookException):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Any = None, code: str = "NOT_FOUND"):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        super().__init__(
            message=message,
            code=code,
            status_code=404
        )


class ShowtimeNotFoundError(NotFoundError):
    def __init__(self, showtime_id: Any = None):
        super().__init__("Showtime", showtime_id, code="SHOWTIME_NOT_FOUND")


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: Any = None):
        super().__init__("Booking", booking_id, code="BOOKING_NOT_FOUND")


class InvoiceNotFoundError(NotFoundError):
    def __init__(self, invoice_id: Any = None):
        super().__init__("Invoice", invoice_id, code="INVOICE_NOT_FOUND")


class PromotionNotFoundError(CinebookException):
    """Promotion is unknown, inactive, outside its window or exhausted"""

    def __init__(self, code: Optional[str] = None):
        super().__init__(
            message="Promotion is not valid or has expired",
            code="PROMOTION_NOT_FOUND",
            status_code=404,
            details={"promotion_code": code} if code else {}
        )


class ValidationError(CinebookException):
    """Validation errors"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class InvalidSeatError(CinebookException):
    """Seat identifiers that do not exist in the room's seat map"""

    def __init__(self, seat_ids: Iterable[str]):
        seat_ids = sorted(seat_ids)
        super().__init__(
            message=f"Seats do not exist: {', '.join(seat_ids)}",
            code="INVALID_SEAT",
            status_code=400,
            details={"invalid_seats": seat_ids}
        )


class ConflictError(CinebookException):
    """Resource conflict errors"""

    def __init__(self, message: str, code: str = "CONFLICT", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code=code,
            status_code=409,
            details=details
        )


class SeatUnavailableError(ConflictError):
    """Seats cannot be held because they are booked or held by someone else"""

    def __init__(self, seat_ids: Iterable[str]):
        seat_ids = sorted(seat_ids)
        super().__init__(
            message=f"Seats are not available: {', '.join(seat_ids)}",
            code="SEATS_UNAVAILABLE",
            details={"unavailable_seats": seat_ids}
        )


class SeatConflictError(ConflictError):
    """Seats were booked or held by another holder before the purchase"""

    def __init__(self, seat_ids: Iterable[str]):
        seat_ids = sorted(seat_ids)
        super().__init__(
            message=f"Seats are no longer available: {', '.join(seat_ids)}",
            code="SEAT_CONFLICT",
            details={"conflicting_seats": seat_ids}
        )


class InsufficientSeatsError(ConflictError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            message="Not enough seats available",
            code="INSUFFICIENT_SEATS",
            details={"requested": requested, "available": available}
        )


class PolicyViolationError(CinebookException):
    """Business policy violations"""

    def __init__(self, message: str, code: str, details: Optional[Dict] = None, status_code: int = 400):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details
        )


class ShowtimeNotBookableError(PolicyViolationError):
    def __init__(self, showtime_id: Any, status: str):
        super().__init__(
            message=f"Showtime is {status} and cannot be booked",
            code="SHOWTIME_NOT_BOOKABLE",
            details={"showtime_id": str(showtime_id), "status": status}
        )


class MinimumPurchaseNotMetError(PolicyViolationError):
    def __init__(self, min_purchase: Any):
        super().__init__(
            message=f"Minimum purchase amount: {min_purchase}",
            code="MINIMUM_PURCHASE_NOT_MET",
            details={"min_purchase": str(min_purchase)}
        )


class TooLateToCancelError(PolicyViolationError):
    def __init__(self, starts_at: Any, window_minutes: int):
        super().__init__(
            message=f"Bookings cannot be cancelled less than {window_minutes} minutes before the showtime",
            code="TOO_LATE_TO_CANCEL",
            details={"starts_at": str(starts_at), "window_minutes": window_minutes}
        )


class AlreadyCancelledError(PolicyViolationError):
    def __init__(self, booking_id: Any):
        super().__init__(
            message="Booking is already cancelled",
            code="ALREADY_CANCELLED",
            details={"booking_id": str(booking_id)}
        )


class BookingNotCancellableError(PolicyViolationError):
    def __init__(self, booking_id: Any, status: str):
        super().__init__(
            message=f"Only confirmed bookings can be cancelled (status: {status})",
            code="BOOKING_NOT_CANCELLABLE",
            details={"booking_id": str(booking_id), "status": status}
        )


class NotOwnerError(PolicyViolationError):
    def __init__(self, resource_id: Any, resource: str = "Booking"):
        super().__init__(
            message=f"{resource} belongs to another user",
            code="NOT_OWNER",
            details={f"{resource.lower()}_id": str(resource_id)},
            status_code=403
        )


class BookingNotConfirmedError(PolicyViolationError):
    def __init__(self, booking_id: Any, status: str):
        super().__init__(
            message="Tickets are only issued for confirmed bookings",
            code="BOOKING_NOT_CONFIRMED",
            details={"booking_id": str(booking_id), "status": status}
        )


class PricingError(CinebookException):
    """Dynamic price resolution failed"""

    def __init__(self, message: str = "Price resolution failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="PRICING_ERROR",
            status_code=500,
            details=details
        )


class BookingTransactionError(CinebookException):
    """Unexpected failure inside the booking write transaction"""

    def __init__(self, message: str = "Booking could not be completed"):
        super().__init__(
            message=message,
            code="INTERNAL_ERROR",
            status_code=500
        )


class LockAcquisitionError(CinebookException):
    """Failed to acquire lock error"""

    def __init__(self, resource: str):
        super().__init__(
            message=f"Failed to acquire lock for resource: {resource}",
            code="LOCK_FAILED",
            status_code=409,
            details={"resource": resource}
        )


class AuthenticationError(CinebookException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            details=details
        )
