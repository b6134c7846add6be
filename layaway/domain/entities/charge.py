"""Charge outcome value objects returned by the charge processor."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChargeStatus(str, Enum):
    """Result of one off-session charge attempt."""

    SUCCEEDED = "succeeded"
    DECLINED = "declined"
    AUTHENTICATION_REQUIRED = "authentication_required"
    ERROR = "error"


class FailureCode(str, Enum):
    """Failure codes stored on installments for follow-up."""

    DECLINED = "declined"
    AUTHENTICATION_REQUIRED = "authentication_required"
    PROCESSOR_ERROR = "processor_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ChargeOutcome:
    """
    Outcome of charging a stored payment method.

    Attributes:
        status: What the processor reported
        transaction_ref: Processor reference (payment intent id), when any
        reason: Human-readable failure reason
        failure_code: Stored failure code, defaults from the status
    """

    status: ChargeStatus
    transaction_ref: Optional[str] = None
    reason: Optional[str] = None
    failure_code: Optional[FailureCode] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatus.SUCCEEDED

    @property
    def resolved_failure_code(self) -> Optional[FailureCode]:
        if self.succeeded:
            return None
        if self.failure_code is not None:
            return self.failure_code
        return {
            ChargeStatus.DECLINED: FailureCode.DECLINED,
            ChargeStatus.AUTHENTICATION_REQUIRED: FailureCode.AUTHENTICATION_REQUIRED,
            ChargeStatus.ERROR: FailureCode.PROCESSOR_ERROR,
        }[self.status]

    @classmethod
    def success(cls, transaction_ref: str) -> "ChargeOutcome":
        return cls(status=ChargeStatus.SUCCEEDED, transaction_ref=transaction_ref)

    @classmethod
    def declined(cls, reason: str, transaction_ref: Optional[str] = None) -> "ChargeOutcome":
        return cls(
            status=ChargeStatus.DECLINED,
            reason=reason,
            transaction_ref=transaction_ref,
        )

    @classmethod
    def authentication_required(
        cls,
        reason: str,
        transaction_ref: Optional[str] = None,
    ) -> "ChargeOutcome":
        return cls(
            status=ChargeStatus.AUTHENTICATION_REQUIRED,
            reason=reason,
            transaction_ref=transaction_ref,
        )

    @classmethod
    def error(cls, reason: str) -> "ChargeOutcome":
        return cls(status=ChargeStatus.ERROR, reason=reason)

    @classmethod
    def timeout(cls, seconds: float) -> "ChargeOutcome":
        return cls(
            status=ChargeStatus.ERROR,
            reason=f"Charge did not complete within {seconds:g}s",
            failure_code=FailureCode.TIMEOUT,
        )
