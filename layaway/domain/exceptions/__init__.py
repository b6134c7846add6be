"""Domain Exceptions - Business rule violations and domain errors."""

from .base import DomainException
from .booking import (
    BookingNotActiveException,
    BookingNotFoundException,
    InvalidBookingRequestException,
)
from .installment import (
    InstallmentNotFoundException,
    InvalidOutcomeException,
    InvalidScheduleException,
)

__all__ = [
    "DomainException",
    "BookingNotActiveException",
    "BookingNotFoundException",
    "InvalidBookingRequestException",
    "InstallmentNotFoundException",
    "InvalidOutcomeException",
    "InvalidScheduleException",
]
