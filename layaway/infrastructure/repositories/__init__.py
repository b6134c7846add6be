"""Repository implementations."""

from .booking_repository import PostgresBookingRepository
from .installment_repository import PostgresInstallmentRepository

__all__ = [
    "PostgresBookingRepository",
    "PostgresInstallmentRepository",
]
