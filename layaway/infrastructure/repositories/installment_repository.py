"""PostgreSQL repository implementation for installments."""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from layaway.domain.entities import (
    CANCELLABLE_STATUSES,
    Installment,
    InstallmentStatus,
)
from layaway.domain.interfaces import InstallmentRepository
from layaway.infrastructure.database.models import InstallmentModel


def installment_to_entity(model: InstallmentModel) -> Installment:
    """Convert database model to domain entity."""
    return Installment(
        id=UUID(model.id),
        booking_id=UUID(model.booking_id),
        due_date=model.due_date,
        amount_cents=model.amount_cents,
        status=InstallmentStatus(model.status),
        attempts=model.attempts,
        key_attempt=model.key_attempt,
        next_retry_at=model.next_retry_at,
        transaction_ref=model.transaction_ref,
        failure_code=model.failure_code,
        failure_reason=model.failure_reason,
        claimed_at=model.claimed_at,
        paid_at=model.paid_at,
        reconciled_at=model.reconciled_at,
        created_at=model.created_at,
    )


class PostgresInstallmentRepository(InstallmentRepository):
    """PostgreSQL-backed installment repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add_all(self, installments: List[Installment]) -> List[Installment]:
        self._session.add_all(
            [
                InstallmentModel(
                    id=str(inst.id),
                    booking_id=str(inst.booking_id),
                    due_date=inst.due_date,
                    amount_cents=inst.amount_cents,
                    status=inst.status.value,
                    attempts=inst.attempts,
                    key_attempt=inst.key_attempt,
                    created_at=inst.created_at,
                )
                for inst in installments
            ]
        )
        await self._session.flush()

        return installments

    async def get_by_id(self, installment_id: UUID) -> Optional[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(InstallmentModel.id == str(installment_id))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None

        return installment_to_entity(model)

    async def get_by_booking_id(self, booking_id: UUID) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(InstallmentModel.booking_id == str(booking_id))
            .order_by(InstallmentModel.due_date.asc(), InstallmentModel.created_at.asc())
        )
        return await self._fetch(stmt)

    async def list_due(self, today: date, limit: int = 100) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(
                InstallmentModel.status == InstallmentStatus.PENDING.value,
                InstallmentModel.due_date <= today,
            )
            .order_by(InstallmentModel.due_date.asc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_retry_ready(self, now: datetime, limit: int = 100) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(
                InstallmentModel.status == InstallmentStatus.FAILED.value,
                InstallmentModel.next_retry_at.is_not(None),
                InstallmentModel.next_retry_at <= now,
            )
            .order_by(InstallmentModel.next_retry_at.asc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_exhausted(self, limit: int = 100) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(
                InstallmentModel.status == InstallmentStatus.FAILED.value,
                InstallmentModel.next_retry_at.is_(None),
            )
            .order_by(InstallmentModel.due_date.asc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_unreconciled(self, limit: int = 100) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(
                InstallmentModel.status == InstallmentStatus.PAID.value,
                InstallmentModel.reconciled_at.is_(None),
            )
            .order_by(InstallmentModel.paid_at.asc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_stale_processing(
        self,
        claimed_before: datetime,
        limit: int = 100,
    ) -> List[Installment]:
        stmt = (
            select(InstallmentModel)
            .where(
                InstallmentModel.status == InstallmentStatus.PROCESSING.value,
                or_(
                    InstallmentModel.claimed_at.is_(None),
                    InstallmentModel.claimed_at < claimed_before,
                ),
            )
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def claim(self, installment_id: UUID, today: date, now: datetime) -> bool:
        """
        Move a due pending or retry-ready failed installment to processing.

        The eligibility check and the status change are one UPDATE, so a
        competing poller that already claimed (or already failed and
        rescheduled) the installment makes this a no-op.
        """
        stmt = (
            update(InstallmentModel)
            .where(InstallmentModel.id == str(installment_id))
            .where(
                or_(
                    and_(
                        InstallmentModel.status == InstallmentStatus.PENDING.value,
                        InstallmentModel.due_date <= today,
                    ),
                    and_(
                        InstallmentModel.status == InstallmentStatus.FAILED.value,
                        InstallmentModel.next_retry_at.is_not(None),
                        InstallmentModel.next_retry_at <= now,
                    ),
                )
            )
            .values(status=InstallmentStatus.PROCESSING.value, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def transition_status(
        self,
        installment_id: UUID,
        from_statuses: Iterable[InstallmentStatus],
        to_status: InstallmentStatus,
        **values: Any,
    ) -> bool:
        stmt = (
            update(InstallmentModel)
            .where(InstallmentModel.id == str(installment_id))
            .where(InstallmentModel.status.in_([s.value for s in from_statuses]))
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def mark_reconciled(self, installment_id: UUID, at: datetime) -> bool:
        stmt = (
            update(InstallmentModel)
            .where(InstallmentModel.id == str(installment_id))
            .where(InstallmentModel.status == InstallmentStatus.PAID.value)
            .where(InstallmentModel.reconciled_at.is_(None))
            .values(reconciled_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def cancel_outstanding(self, booking_id: UUID) -> int:
        stmt = (
            update(InstallmentModel)
            .where(InstallmentModel.booking_id == str(booking_id))
            .where(InstallmentModel.status.in_([s.value for s in CANCELLABLE_STATUSES]))
            .values(status=InstallmentStatus.CANCELLED.value, next_retry_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def _fetch(self, stmt) -> List[Installment]:
        result = await self._session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return [installment_to_entity(model) for model in result.scalars().all()]
