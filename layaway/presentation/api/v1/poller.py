"""Poller API endpoints."""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from layaway.application.services import InstallmentPoller
from layaway.core.clock import to_naive_utc
from layaway.core.dependencies import get_poller
from layaway.presentation.schemas import PollSummarySchema

poller_router = APIRouter(prefix="/poller")


@poller_router.post(
    "/run",
    response_model=PollSummarySchema,
    summary="Run Poll Cycle",
    description="""
    Run one poll cycle now: fail abandoned claims, repair missed
    reconciliations, then charge every due and retry-ready installment.
    Safe to call while the background poller is running.
    """,
)
async def run_poll_cycle(
    poller: Annotated[InstallmentPoller, Depends(get_poller)],
    now: Annotated[
        Optional[datetime],
        Query(description="Run the cycle as if it were this UTC time"),
    ] = None,
) -> PollSummarySchema:
    summary = await poller.run_cycle(to_naive_utc(now))
    return PollSummarySchema(**summary.to_dict())
