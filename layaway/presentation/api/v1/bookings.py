"""Booking API endpoints."""

from dataclasses import asdict
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Request

from layaway.application.dto import BookingResponse, CreateBookingRequest
from layaway.application.services import BookingService, InstallmentService
from layaway.core.dependencies import (
    ServiceScope,
    get_booking_service,
    get_installment_service,
    get_service_scope,
)
from layaway.presentation.schemas import (
    BookingResponseSchema,
    CancelBookingResponseSchema,
    ChangeFrequencyRequestSchema,
    CreateBookingRequestSchema,
    ErrorResponseSchema,
)

bookings_router = APIRouter(
    prefix="/bookings",
    responses={
        404: {"model": ErrorResponseSchema, "description": "Booking not found"},
        409: {"model": ErrorResponseSchema, "description": "Booking is not active"},
    },
)

BookingId = Annotated[UUID, Path(description="UUID of the booking")]


def _to_schema(response: BookingResponse) -> BookingResponseSchema:
    return BookingResponseSchema(**asdict(response))


@bookings_router.post(
    "",
    response_model=BookingResponseSchema,
    status_code=201,
    summary="Create Booking",
    description="""
    Create a booking at checkout and generate its installment schedule.

    The deposit counts as already paid. A deposit covering the whole total
    completes the booking immediately.
    """,
    responses={400: {"model": ErrorResponseSchema, "description": "Invalid request"}},
)
async def create_booking(
    request: CreateBookingRequestSchema,
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponseSchema:
    dto = CreateBookingRequest(
        customer_ref=request.customer_ref,
        payment_method_ref=request.payment_method_ref,
        trip_id=request.trip_id,
        package=request.package,
        total_cents=request.total_cents,
        deposit_cents=request.deposit_cents,
        payment_frequency=request.payment_frequency,
        cutoff_date=request.cutoff_date,
    )
    return _to_schema(await booking_service.create_booking(dto))


@bookings_router.get(
    "/{booking_id}",
    response_model=BookingResponseSchema,
    summary="Get Booking",
)
async def get_booking(
    booking_id: BookingId,
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponseSchema:
    return _to_schema(await booking_service.get_booking(booking_id))


@bookings_router.post(
    "/{booking_id}/schedule",
    response_model=BookingResponseSchema,
    summary="Regenerate Schedule",
    description="""
    Cancel outstanding installments and schedule the remaining balance from
    today using the booking's current frequency.
    """,
)
async def regenerate_schedule(
    booking_id: BookingId,
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponseSchema:
    await installment_service.generate_schedule(booking_id)
    return _to_schema(await booking_service.get_booking(booking_id))


@bookings_router.put(
    "/{booking_id}/frequency",
    response_model=BookingResponseSchema,
    summary="Change Payment Frequency",
    description="""
    Switch the booking to a new frequency. Pending and failed installments
    are cancelled and the remaining balance is rescheduled; paid and
    in-flight installments are left untouched.
    """,
)
async def change_frequency(
    booking_id: BookingId,
    request: ChangeFrequencyRequestSchema,
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponseSchema:
    await installment_service.change_frequency(booking_id, request.payment_frequency)
    return _to_schema(await booking_service.get_booking(booking_id))


@bookings_router.post(
    "/{booking_id}/payoff",
    response_model=BookingResponseSchema,
    status_code=202,
    summary="Pay Off Early",
    description="""
    Replace the outstanding installments with one installment due today.
    The charge runs in the background once the response is sent; if no
    poller is running here, the next poll cycle collects it.
    """,
)
async def pay_off_early(
    booking_id: BookingId,
    http_request: Request,
    background_tasks: BackgroundTasks,
    service_scope: Annotated[ServiceScope, Depends(get_service_scope)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponseSchema:
    # Committed before the background charge tries to claim it.
    async with service_scope() as service:
        installment = await service.pay_off_early(booking_id)

    poller = getattr(http_request.app.state, "poller", None)
    if installment is not None and poller is not None:
        background_tasks.add_task(poller.process_installment, installment.id)

    return _to_schema(await booking_service.get_booking(booking_id))


@bookings_router.post(
    "/{booking_id}/cancel",
    response_model=CancelBookingResponseSchema,
    summary="Cancel Booking",
)
async def cancel_booking(
    booking_id: BookingId,
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
) -> CancelBookingResponseSchema:
    cancelled = await installment_service.cancel_booking(booking_id)
    return CancelBookingResponseSchema(
        booking_id=str(booking_id),
        installments_cancelled=cancelled,
    )
