"""Data Transfer Objects for application layer."""

from .booking import BookingResponse, CreateBookingRequest
from .installment import InstallmentDTO, OutcomeRequest

__all__ = [
    "BookingResponse",
    "CreateBookingRequest",
    "InstallmentDTO",
    "OutcomeRequest",
]
