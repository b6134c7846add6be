"""Application services (use cases)."""

from .booking_service import BookingService
from .installment_service import InstallmentService, OutcomeResult
from .poller import InstallmentPoller, PollSummary

__all__ = [
    "BookingService",
    "InstallmentPoller",
    "InstallmentService",
    "OutcomeResult",
    "PollSummary",
]
