"""PostgreSQL implementation of BookingRepository."""

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from layaway.domain.entities import (
    Booking,
    BookingStatus,
    InstallmentStatus,
    PaymentFrequency,
)
from layaway.domain.interfaces import BookingRepository
from layaway.infrastructure.database.models import BookingModel, InstallmentModel
from .installment_repository import installment_to_entity


class PostgresBookingRepository(BookingRepository):
    """
    PostgreSQL implementation of the Booking repository.

    Paid-amount and status changes are issued as single UPDATE statements
    so concurrent reconciliations of the same booking never race.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def save(self, booking: Booking) -> Booking:
        """Persist a booking to the database."""
        model = BookingModel(
            id=str(booking.id),
            customer_ref=booking.customer_ref,
            payment_method_ref=booking.payment_method_ref,
            trip_id=booking.trip_id,
            package=booking.package,
            total_cents=booking.total_cents,
            deposit_cents=booking.deposit_cents,
            amount_paid_cents=booking.amount_paid_cents,
            payment_frequency=booking.payment_frequency.value,
            cutoff_date=booking.cutoff_date,
            status=booking.status.value,
            created_at=booking.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        return booking

    async def get_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Retrieve a booking with its installments."""
        stmt = (
            select(BookingModel)
            .options(selectinload(BookingModel.installments))
            .where(BookingModel.id == str(booking_id))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        return self._to_entity(model)

    async def get_for_update(self, booking_id: UUID) -> Optional[Booking]:
        """Retrieve a booking with SELECT ... FOR UPDATE."""
        stmt = (
            select(BookingModel)
            .options(selectinload(BookingModel.installments))
            .where(BookingModel.id == str(booking_id))
            .with_for_update(of=BookingModel)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        return self._to_entity(model)

    async def outstanding_cents(self, booking_id: UUID) -> int:
        in_flight = (
            select(func.coalesce(func.sum(InstallmentModel.amount_cents), 0))
            .where(
                InstallmentModel.booking_id == BookingModel.id,
                InstallmentModel.status == InstallmentStatus.PROCESSING.value,
            )
            .scalar_subquery()
        )
        stmt = select(
            BookingModel.total_cents - BookingModel.amount_paid_cents - in_flight
        ).where(BookingModel.id == str(booking_id))
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def update_frequency(
        self,
        booking_id: UUID,
        frequency: PaymentFrequency,
    ) -> None:
        stmt = (
            update(BookingModel)
            .where(BookingModel.id == str(booking_id))
            .values(payment_frequency=frequency.value)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def increment_amount_paid(
        self,
        booking_id: UUID,
        amount_cents: int,
    ) -> Optional[Booking]:
        """Add to amount_paid_cents in one UPDATE, capped at total_cents."""
        new_total = BookingModel.amount_paid_cents + amount_cents
        stmt = (
            update(BookingModel)
            .where(BookingModel.id == str(booking_id))
            .values(
                amount_paid_cents=case(
                    (new_total > BookingModel.total_cents, BookingModel.total_cents),
                    else_=new_total,
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            return None

        return await self.get_by_id(booking_id)

    async def transition_status(
        self,
        booking_id: UUID,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
    ) -> bool:
        stmt = (
            update(BookingModel)
            .where(BookingModel.id == str(booking_id))
            .where(BookingModel.status.in_([s.value for s in from_statuses]))
            .values(status=to_status.value)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_entity(self, model: BookingModel) -> Booking:
        """Convert database model to domain entity."""
        return Booking(
            id=UUID(model.id),
            customer_ref=model.customer_ref,
            payment_method_ref=model.payment_method_ref,
            trip_id=model.trip_id,
            package=model.package,
            total_cents=model.total_cents,
            deposit_cents=model.deposit_cents,
            amount_paid_cents=model.amount_paid_cents,
            payment_frequency=PaymentFrequency(model.payment_frequency),
            cutoff_date=model.cutoff_date,
            status=BookingStatus(model.status),
            created_at=model.created_at,
            installments=[installment_to_entity(inst) for inst in model.installments],
        )
