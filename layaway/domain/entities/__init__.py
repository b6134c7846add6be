"""Domain Entities - Core business objects."""

from .booking import Booking, BookingStatus, PaymentFrequency
from .installment import (
    CANCELLABLE_STATUSES,
    Installment,
    InstallmentStatus,
)
from .charge import ChargeOutcome, ChargeStatus, FailureCode

__all__ = [
    "Booking",
    "BookingStatus",
    "PaymentFrequency",
    "Installment",
    "InstallmentStatus",
    "CANCELLABLE_STATUSES",
    "ChargeOutcome",
    "ChargeStatus",
    "FailureCode",
]
