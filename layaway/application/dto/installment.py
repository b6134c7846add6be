"""Data transfer objects for installment operations."""

from dataclasses import dataclass
from typing import List, Optional

from layaway.domain.entities import ChargeOutcome, ChargeStatus


def _timestamp(value) -> Optional[str]:
    return value.isoformat() + "Z" if value else None


@dataclass(frozen=True)
class InstallmentDTO:
    """Single installment as returned to API consumers."""

    installment_id: str
    booking_id: str
    due_date: str
    amount_cents: int
    status: str
    attempts: int
    next_retry_at: Optional[str]
    transaction_ref: Optional[str]
    failure_code: Optional[str]
    failure_reason: Optional[str]
    paid_at: Optional[str]
    retries_exhausted: bool
    requires_customer_action: bool

    @classmethod
    def from_entity(cls, installment) -> "InstallmentDTO":
        return cls(
            installment_id=str(installment.id),
            booking_id=str(installment.booking_id),
            due_date=installment.due_date.isoformat(),
            amount_cents=installment.amount_cents,
            status=installment.status.value,
            attempts=installment.attempts,
            next_retry_at=_timestamp(installment.next_retry_at),
            transaction_ref=installment.transaction_ref,
            failure_code=installment.failure_code,
            failure_reason=installment.failure_reason,
            paid_at=_timestamp(installment.paid_at),
            retries_exhausted=installment.retries_exhausted,
            requires_customer_action=installment.requires_customer_action,
        )

    @classmethod
    def from_entities(cls, installments) -> List["InstallmentDTO"]:
        return [cls.from_entity(inst) for inst in installments]


@dataclass(frozen=True)
class OutcomeRequest:
    """Charge outcome reported for a processing installment."""

    status: ChargeStatus
    transaction_ref: Optional[str] = None
    reason: Optional[str] = None

    def validate(self) -> List[str]:
        errors = []

        if self.status == ChargeStatus.SUCCEEDED and not self.transaction_ref:
            errors.append("transaction_ref is required for a succeeded outcome")

        if self.status != ChargeStatus.SUCCEEDED and not self.reason:
            errors.append("reason is required for a failed outcome")

        return errors

    def to_outcome(self) -> ChargeOutcome:
        return ChargeOutcome(
            status=self.status,
            transaction_ref=self.transaction_ref,
            reason=self.reason,
        )
