"""Data transfer objects for booking operations."""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from layaway.core.clock import utctoday
from layaway.domain.entities import PaymentFrequency
from .installment import InstallmentDTO


@dataclass(frozen=True)
class CreateBookingRequest:
    """Input data for creating a booking at checkout."""

    customer_ref: str
    payment_method_ref: str
    trip_id: str
    total_cents: int
    payment_frequency: PaymentFrequency
    cutoff_date: date
    package: Optional[str] = None
    deposit_cents: int = 0

    def validate(self, today: Optional[date] = None) -> List[str]:
        errors = []
        today = today or utctoday()

        if not self.customer_ref or not self.customer_ref.strip():
            errors.append("customer_ref is required")

        if not self.payment_method_ref or not self.payment_method_ref.strip():
            errors.append("payment_method_ref is required")

        if not self.trip_id or not self.trip_id.strip():
            errors.append("trip_id is required")

        if self.total_cents <= 0:
            errors.append("total_cents must be positive")

        if self.deposit_cents < 0:
            errors.append("deposit_cents cannot be negative")
        elif self.deposit_cents > self.total_cents:
            errors.append("deposit_cents cannot exceed total_cents")

        if self.cutoff_date < today:
            errors.append("cutoff_date cannot be in the past")

        return errors


@dataclass(frozen=True)
class BookingResponse:
    """Response data for a booking with its installment schedule."""

    booking_id: str
    customer_ref: str
    trip_id: str
    package: Optional[str]
    total_cents: int
    deposit_cents: int
    amount_paid_cents: int
    remaining_cents: int
    payment_frequency: str
    cutoff_date: str
    status: str
    installments: List[InstallmentDTO]

    @classmethod
    def from_entity(cls, booking) -> "BookingResponse":
        return cls(
            booking_id=str(booking.id),
            customer_ref=booking.customer_ref,
            trip_id=booking.trip_id,
            package=booking.package,
            total_cents=booking.total_cents,
            deposit_cents=booking.deposit_cents,
            amount_paid_cents=booking.amount_paid_cents,
            remaining_cents=booking.remaining_cents,
            payment_frequency=booking.payment_frequency.value,
            cutoff_date=booking.cutoff_date.isoformat(),
            status=booking.status.value,
            installments=[InstallmentDTO.from_entity(inst) for inst in booking.installments],
        )
