"""Installment entity: one scheduled charge belonging to a booking."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from layaway.core.clock import utcnow


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


# States an external trigger (frequency change, cancellation) may cancel.
CANCELLABLE_STATUSES = frozenset({InstallmentStatus.PENDING, InstallmentStatus.FAILED})


@dataclass
class Installment:
    """
    A single scheduled payment within a booking.

    key_attempt is the attempt number whose idempotency key the next charge
    reuses. It follows attempts, except after a timeout: the abandoned
    charge may have gone through, so the retry replays the same key.
    """

    booking_id: UUID
    due_date: date
    amount_cents: int
    id: UUID = field(default_factory=uuid4)
    status: InstallmentStatus = InstallmentStatus.PENDING
    attempts: int = 0
    key_attempt: int = 0
    next_retry_at: Optional[datetime] = None
    transaction_ref: Optional[str] = None
    failure_code: Optional[str] = None
    failure_reason: Optional[str] = None
    claimed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    reconciled_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def idempotency_key(self) -> str:
        """Charge processor idempotency key for the next attempt."""
        return f"{self.id}:{self.key_attempt}"

    @property
    def retries_exhausted(self) -> bool:
        """A failed installment with no retry scheduled needs an operator."""
        return self.status == InstallmentStatus.FAILED and self.next_retry_at is None

    @property
    def requires_customer_action(self) -> bool:
        return (
            self.status == InstallmentStatus.FAILED
            and self.failure_code == "authentication_required"
        )
