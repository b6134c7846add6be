"""Booking-related domain exceptions."""

from .base import DomainException


class BookingNotFoundException(DomainException):
    """Raised when a booking cannot be found."""

    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Booking not found: {booking_id}",
            code="BOOKING_NOT_FOUND",
        )
        self.booking_id = booking_id


class InvalidBookingRequestException(DomainException):
    """Raised when a booking request is invalid."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="INVALID_BOOKING_REQUEST",
        )


class BookingNotActiveException(DomainException):
    """Raised when an operation needs an active booking."""

    def __init__(self, booking_id: str, status: str):
        super().__init__(
            message=f"Booking {booking_id} is {status}, expected active",
            code="BOOKING_NOT_ACTIVE",
        )
        self.booking_id = booking_id
        self.status = status
