"""Poller Pydantic schemas."""

from pydantic import BaseModel, Field


class PollSummarySchema(BaseModel):
    """Counts from one poll cycle."""

    due: int = Field(..., ge=0, description="Pending installments found due")
    retry: int = Field(..., ge=0, description="Failed installments ready for retry")
    claimed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0, description="Claims lost to another poller")
    paid: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)
    repaired: int = Field(..., ge=0, description="Late reconciliations")
    stale: int = Field(..., ge=0, description="Abandoned claims failed with a timeout")
