"""Booking entity representing one customer's purchase of a trip package."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID, uuid4

from layaway.core.clock import utcnow

if TYPE_CHECKING:
    from .installment import Installment


class PaymentFrequency(str, Enum):
    """Cadence at which a booking's balance is collected."""

    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    LUMP_SUM = "lump-sum"


class BookingStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


@dataclass
class Booking:
    """
    A customer's booking paid for in installments.

    Attributes:
        customer_ref: Charge processor customer reference
        payment_method_ref: Stored payment method charged off-session
        total_cents: Full booking price in cents
        amount_paid_cents: Amount collected so far (deposit included)
        payment_frequency: Installment cadence
        cutoff_date: Last date by which the booking must be fully paid
    """

    customer_ref: str
    payment_method_ref: str
    trip_id: str
    total_cents: int
    payment_frequency: PaymentFrequency
    cutoff_date: date
    package: Optional[str] = None
    deposit_cents: int = 0
    amount_paid_cents: int = 0
    status: BookingStatus = BookingStatus.ACTIVE
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    installments: List["Installment"] = field(default_factory=list)

    @property
    def remaining_cents(self) -> int:
        return max(0, self.total_cents - self.amount_paid_cents)
