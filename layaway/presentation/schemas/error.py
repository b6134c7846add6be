"""Pydantic schema for API error responses."""

from pydantic import BaseModel, Field


class ErrorResponseSchema(BaseModel):
    """
    Error body returned by every failing endpoint.

    Codes: BOOKING_NOT_FOUND, INSTALLMENT_NOT_FOUND (404),
    INVALID_BOOKING_REQUEST, INVALID_SCHEDULE, INVALID_OUTCOME (400),
    BOOKING_NOT_ACTIVE (409) and INTERNAL_ERROR (500).
    """

    error: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=["BOOKING_NOT_ACTIVE"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Booking 550e8400-e29b-41d4-a716-446655440000 is cancelled, expected active"],
    )
    request_id: str | None = Field(
        None,
        description="X-Request-ID of the failing request",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": "BOOKING_NOT_FOUND",
                    "message": "Booking not found: 550e8400-e29b-41d4-a716-446655440000",
                    "request_id": "9f1c2d3e-4b5a-6789-abcd-ef0123456789",
                },
                {
                    "error": "INVALID_OUTCOME",
                    "message": "transaction_ref is required for a succeeded outcome",
                    "request_id": "9f1c2d3e-4b5a-6789-abcd-ef0123456789",
                },
            ]
        }
    }
