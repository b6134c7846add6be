"""Installment-related Pydantic schemas."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class InstallmentSchema(BaseModel):
    """Schema for a single installment."""

    installment_id: str = Field(..., description="UUID of the installment")
    booking_id: str = Field(..., description="UUID of the owning booking")
    due_date: str = Field(
        ...,
        description="Due date in ISO 8601 format (YYYY-MM-DD)",
        examples=["2026-11-01"],
    )
    amount_cents: int = Field(..., gt=0, examples=[33334])
    status: str = Field(
        ...,
        description="pending, processing, paid, failed or cancelled",
        examples=["pending"],
    )
    attempts: int = Field(..., ge=0, description="Failed charge attempts so far")
    next_retry_at: Optional[str] = Field(
        None,
        description="When the next retry becomes eligible (UTC)",
    )
    transaction_ref: Optional[str] = None
    failure_code: Optional[str] = Field(None, examples=["declined"])
    failure_reason: Optional[str] = None
    paid_at: Optional[str] = None
    retries_exhausted: bool = Field(
        False,
        description="Failed with no retry left; needs an operator",
    )
    requires_customer_action: bool = Field(
        False,
        description="Failed because the card needs cardholder authentication",
    )


class InstallmentListSchema(BaseModel):
    installments: list[InstallmentSchema]
    count: int


class OutcomeRequestSchema(BaseModel):
    """Schema for POST /v1/installments/{installment_id}/outcome."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"status": "succeeded", "transaction_ref": "pi_3Nx2y3z4"},
                {"status": "declined", "reason": "Your card has insufficient funds."},
            ]
        }
    )
    status: Literal["succeeded", "declined", "authentication_required", "error"] = Field(
        ...,
        description="What the charge processor reported",
    )
    transaction_ref: Optional[str] = Field(
        None,
        max_length=255,
        description="Processor reference, required on success",
    )
    reason: Optional[str] = Field(
        None,
        max_length=1000,
        description="Failure reason, required on failure",
    )


class OutcomeResponseSchema(BaseModel):
    applied: bool = Field(
        ...,
        description="False when the installment was not processing; nothing changed",
    )
    booking_completed: bool = False
    installment: InstallmentSchema


class ClaimResponseSchema(BaseModel):
    installment_id: str
    claimed: bool = Field(
        ...,
        description="False when the installment was not eligible or already claimed",
    )
