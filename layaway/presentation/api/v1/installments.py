"""Installment API endpoints."""

from dataclasses import asdict
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from layaway.application.dto import InstallmentDTO, OutcomeRequest
from layaway.application.services import InstallmentService
from layaway.core.clock import to_naive_utc
from layaway.core.dependencies import (
    ServiceScope,
    get_installment_service,
    get_service_scope,
)
from layaway.domain.entities import ChargeStatus
from layaway.domain.exceptions import InvalidOutcomeException
from layaway.presentation.schemas import (
    ClaimResponseSchema,
    ErrorResponseSchema,
    InstallmentListSchema,
    InstallmentSchema,
    OutcomeRequestSchema,
    OutcomeResponseSchema,
)

installments_router = APIRouter(
    prefix="/installments",
    responses={
        404: {"model": ErrorResponseSchema, "description": "Installment not found"},
    },
)

InstallmentId = Annotated[UUID, Path(description="UUID of the installment")]
Now = Annotated[
    Optional[datetime],
    Query(description="Evaluate eligibility at this UTC time instead of now"),
]
Limit = Annotated[int, Query(ge=1, le=1000, description="Maximum results")]


def _to_schema(installment) -> InstallmentSchema:
    return InstallmentSchema(**asdict(InstallmentDTO.from_entity(installment)))


def _to_list(installments) -> InstallmentListSchema:
    return InstallmentListSchema(
        installments=[_to_schema(inst) for inst in installments],
        count=len(installments),
    )


@installments_router.get(
    "/due",
    response_model=InstallmentListSchema,
    summary="List Due Installments",
    description="Pending installments whose due date is on or before today.",
)
async def list_due(
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
    now: Now = None,
    limit: Limit = 100,
) -> InstallmentListSchema:
    return _to_list(await installment_service.list_due(to_naive_utc(now), limit))


@installments_router.get(
    "/retry-ready",
    response_model=InstallmentListSchema,
    summary="List Retry-Ready Installments",
    description="Failed installments whose next retry time has passed.",
)
async def list_retry_ready(
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
    now: Now = None,
    limit: Limit = 100,
) -> InstallmentListSchema:
    return _to_list(await installment_service.list_retry_ready(to_naive_utc(now), limit))


@installments_router.get(
    "/exhausted",
    response_model=InstallmentListSchema,
    summary="List Exhausted Installments",
    description="Failed installments with no retry left; these need an operator.",
)
async def list_exhausted(
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
    limit: Limit = 100,
) -> InstallmentListSchema:
    return _to_list(await installment_service.list_exhausted(limit))


@installments_router.get(
    "/{installment_id}",
    response_model=InstallmentSchema,
    summary="Get Installment",
)
async def get_installment(
    installment_id: InstallmentId,
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
) -> InstallmentSchema:
    return _to_schema(await installment_service.get_installment(installment_id))


@installments_router.post(
    "/{installment_id}/claim",
    response_model=ClaimResponseSchema,
    summary="Claim Installment",
    description="""
    Move an eligible installment to processing before charging it
    externally. Returns claimed=false if it is not due, not ready for
    retry, or already claimed.
    """,
)
async def claim_installment(
    installment_id: InstallmentId,
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
) -> ClaimResponseSchema:
    await installment_service.get_installment(installment_id)
    claimed = await installment_service.claim(installment_id)
    return ClaimResponseSchema(installment_id=str(installment_id), claimed=claimed)


@installments_router.post(
    "/{installment_id}/outcome",
    response_model=OutcomeResponseSchema,
    summary="Record Charge Outcome",
    description="""
    Record the result of charging a processing installment. Recording
    against an installment that is not processing changes nothing.
    """,
    responses={400: {"model": ErrorResponseSchema, "description": "Invalid outcome"}},
)
async def record_outcome(
    installment_id: InstallmentId,
    request: OutcomeRequestSchema,
    service_scope: Annotated[ServiceScope, Depends(get_service_scope)],
) -> OutcomeResponseSchema:
    dto = OutcomeRequest(
        status=ChargeStatus(request.status),
        transaction_ref=request.transaction_ref,
        reason=request.reason,
    )
    errors = dto.validate()
    if errors:
        raise InvalidOutcomeException("; ".join(errors))

    # Notifications go out once the outcome has committed.
    async with service_scope() as service:
        result = await service.record_outcome(installment_id, dto.to_outcome())

    return OutcomeResponseSchema(
        applied=result.applied,
        booking_completed=result.booking_completed,
        installment=_to_schema(result.installment),
    )
