"""Installment and schedule domain exceptions."""

from .base import DomainException


class InstallmentNotFoundException(DomainException):
    """Raised when an installment cannot be found."""

    def __init__(self, installment_id: str):
        super().__init__(
            message=f"Installment not found: {installment_id}",
            code="INSTALLMENT_NOT_FOUND",
        )
        self.installment_id = installment_id


class InvalidScheduleException(DomainException):
    """Raised when schedule inputs cannot produce a valid schedule."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="INVALID_SCHEDULE",
        )


class InvalidOutcomeException(DomainException):
    """Raised when a recorded charge outcome is malformed."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="INVALID_OUTCOME",
        )
