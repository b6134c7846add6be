"""Booking-related Pydantic schemas."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from layaway.domain.entities import PaymentFrequency
from .installment import InstallmentSchema


class CreateBookingRequestSchema(BaseModel):
    """Schema for POST /v1/bookings request body."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "customer_ref": "cus_P1a2b3c4",
                    "payment_method_ref": "pm_1Nx2y3z4",
                    "trip_id": "trip_patagonia_2026",
                    "package": "standard",
                    "total_cents": 100000,
                    "deposit_cents": 0,
                    "payment_frequency": "bi-weekly",
                    "cutoff_date": "2026-12-31",
                }
            ]
        }
    )
    customer_ref: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Charge processor customer reference",
        examples=["cus_P1a2b3c4"],
    )
    payment_method_ref: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Stored payment method charged off-session",
        examples=["pm_1Nx2y3z4"],
    )
    trip_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Trip being booked",
    )
    package: Optional[str] = Field(
        None,
        max_length=255,
        description="Package tier within the trip",
    )
    total_cents: int = Field(
        ...,
        gt=0,
        description="Full booking price in cents",
        examples=[100000],
    )
    deposit_cents: int = Field(
        0,
        ge=0,
        description="Amount already collected at checkout",
        examples=[0],
    )
    payment_frequency: PaymentFrequency = Field(
        ...,
        description="Installment cadence",
        examples=["bi-weekly"],
    )
    cutoff_date: date = Field(
        ...,
        description="Date by which the booking must be fully paid",
        examples=["2026-12-31"],
    )

    @field_validator("customer_ref", "payment_method_ref", "trip_id")
    @classmethod
    def strip_refs(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value cannot be empty or whitespace")
        return v.strip()


class ChangeFrequencyRequestSchema(BaseModel):
    """Schema for PUT /v1/bookings/{booking_id}/frequency request body."""

    payment_frequency: PaymentFrequency = Field(
        ...,
        description="New installment cadence",
        examples=["monthly"],
    )


class BookingResponseSchema(BaseModel):
    """Schema for a booking with its installment schedule."""

    booking_id: str = Field(..., description="UUID of the booking")
    customer_ref: str
    trip_id: str
    package: Optional[str] = None
    total_cents: int = Field(..., description="Full booking price in cents")
    deposit_cents: int
    amount_paid_cents: int = Field(..., description="Collected so far, deposit included")
    remaining_cents: int
    payment_frequency: str = Field(..., examples=["bi-weekly"])
    cutoff_date: str = Field(..., description="ISO 8601 date", examples=["2026-12-31"])
    status: str = Field(..., examples=["active"])
    installments: list[InstallmentSchema] = Field(
        ...,
        description="All installments ordered by due date, cancelled ones included",
    )


class CancelBookingResponseSchema(BaseModel):
    booking_id: str
    status: str = "cancelled"
    installments_cancelled: int = Field(..., ge=0)
