"""Booking service - handles booking creation and retrieval use cases."""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from layaway.core.clock import utcnow
from layaway.domain.entities import Booking, BookingStatus
from layaway.domain.exceptions import (
    BookingNotFoundException,
    InvalidBookingRequestException,
)
from layaway.domain.interfaces import BookingRepository
from layaway.application.dto import BookingResponse, CreateBookingRequest
from .installment_service import InstallmentService

logger = structlog.get_logger(__name__)


class BookingService:
    """
    Application service for booking use cases.

    Scheduling and every change to the paid amount, the deposit included,
    are delegated to InstallmentService.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        installment_service: InstallmentService,
    ):
        self._booking_repo = booking_repository
        self._installments = installment_service

    async def create_booking(
        self,
        request: CreateBookingRequest,
        now: Optional[datetime] = None,
    ) -> BookingResponse:
        """
        Create a booking and its initial installment schedule.

        The deposit counts as already paid. A deposit covering the whole
        total completes the booking without any installments.

        Raises:
            InvalidBookingRequestException: If request validation fails
        """
        now = now or utcnow()
        errors = request.validate(today=now.date())
        if errors:
            raise InvalidBookingRequestException("; ".join(errors))

        booking = Booking(
            customer_ref=request.customer_ref,
            payment_method_ref=request.payment_method_ref,
            trip_id=request.trip_id,
            package=request.package,
            total_cents=request.total_cents,
            deposit_cents=request.deposit_cents,
            amount_paid_cents=0,
            payment_frequency=request.payment_frequency,
            cutoff_date=request.cutoff_date,
            status=BookingStatus.ACTIVE,
            created_at=now,
        )
        await self._booking_repo.save(booking)

        log = logger.bind(booking_id=str(booking.id), customer_ref=booking.customer_ref)
        log.info(
            "booking_created",
            total_cents=booking.total_cents,
            deposit_cents=booking.deposit_cents,
            frequency=booking.payment_frequency.value,
            cutoff_date=booking.cutoff_date.isoformat(),
        )

        completed = False
        if booking.deposit_cents > 0:
            _, completed = await self._installments.record_deposit(
                booking.id, booking.deposit_cents
            )

        if completed:
            log.info("booking_paid_by_deposit")
        else:
            await self._installments.generate_schedule(booking.id, now)

        return await self.get_booking(booking.id)

    async def get_booking(self, booking_id: UUID) -> BookingResponse:
        """
        Retrieve a booking with its installments.

        Raises:
            BookingNotFoundException: If booking not found
        """
        booking = await self._booking_repo.get_by_id(booking_id)

        if booking is None:
            logger.warning("booking_not_found", booking_id=str(booking_id))
            raise BookingNotFoundException(str(booking_id))

        return BookingResponse.from_entity(booking)
