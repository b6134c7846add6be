"""Pydantic schemas for API request/response validation."""

from .booking import (
    BookingResponseSchema,
    CancelBookingResponseSchema,
    ChangeFrequencyRequestSchema,
    CreateBookingRequestSchema,
)
from .installment import (
    ClaimResponseSchema,
    InstallmentListSchema,
    InstallmentSchema,
    OutcomeRequestSchema,
    OutcomeResponseSchema,
)
from .poller import PollSummarySchema
from .error import ErrorResponseSchema

__all__ = [
    "BookingResponseSchema",
    "CancelBookingResponseSchema",
    "ChangeFrequencyRequestSchema",
    "CreateBookingRequestSchema",
    "ClaimResponseSchema",
    "InstallmentListSchema",
    "InstallmentSchema",
    "OutcomeRequestSchema",
    "OutcomeResponseSchema",
    "PollSummarySchema",
    "ErrorResponseSchema",
]
