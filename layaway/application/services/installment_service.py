"""Installment service - schedule, claim, outcome and reconciliation use cases."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import partial
from typing import Awaitable, Callable, List, Optional, Tuple
from uuid import UUID

import structlog

from layaway.core.clock import utcnow
from layaway.core.metrics import (
    record_amount_collected,
    record_booking_completed,
    record_charge_outcome,
    record_claim_conflict,
    record_reconciliation_repair,
    record_retries_exhausted,
    record_retry_scheduled,
    record_stale_processing,
)
from layaway.domain.entities import (
    Booking,
    BookingStatus,
    ChargeOutcome,
    FailureCode,
    Installment,
    InstallmentStatus,
    PaymentFrequency,
)
from layaway.domain.exceptions import (
    BookingNotActiveException,
    BookingNotFoundException,
    InstallmentNotFoundException,
    InvalidOutcomeException,
)
from layaway.domain.interfaces import (
    BookingRepository,
    InstallmentRepository,
    NotificationClient,
)
from layaway.service import scheduling
from layaway.service.scheduling import RetryPolicy, SchedulingSettings

logger = structlog.get_logger(__name__)

# Bookings whose schedule may still be rewritten.
SCHEDULABLE_STATUSES = frozenset({BookingStatus.ACTIVE, BookingStatus.OVERDUE})


@dataclass
class OutcomeResult:
    """
    Result of recording a charge outcome.

    Attributes:
        installment: The installment after the outcome was applied
        applied: False when the installment was no longer processing
        booking: The booking after reconciliation, on success
        booking_completed: True if this payment completed the booking
    """

    installment: Installment
    applied: bool
    booking: Optional[Booking] = None
    booking_completed: bool = False


class InstallmentService:
    """
    Application service for the installment lifecycle.

    Every status change goes through a conditional repository update, so
    callers in other processes racing on the same installment see False
    instead of overwriting each other.
    """

    def __init__(
        self,
        installment_repository: InstallmentRepository,
        booking_repository: BookingRepository,
        retry_policy: Optional[RetryPolicy] = None,
        notification_client: Optional[NotificationClient] = None,
        scheduling_settings: Optional[SchedulingSettings] = None,
    ):
        self._installment_repo = installment_repository
        self._booking_repo = booking_repository
        self._settings = scheduling_settings or scheduling.scheduling_settings
        self._retry_policy = retry_policy or self._settings.retry_policy
        self._notifier = notification_client
        self._pending_notifications: List[Callable[[], Awaitable[bool]]] = []

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _queue(self, send: Callable[..., Awaitable[bool]], *args) -> None:
        self._pending_notifications.append(partial(send, *args))

    async def send_notifications(self) -> int:
        """
        Send the notifications queued by recorded outcomes.

        Call only once the unit of work that produced them has committed,
        so no event announces a change that was rolled back. Delivery
        failures are handled by the client and never raised.

        Returns:
            Number of notifications sent
        """
        pending, self._pending_notifications = self._pending_notifications, []
        for send in pending:
            await send()
        return len(pending)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def get_installment(self, installment_id: UUID) -> Installment:
        installment = await self._installment_repo.get_by_id(installment_id)
        if installment is None:
            logger.warning("installment_not_found", installment_id=str(installment_id))
            raise InstallmentNotFoundException(str(installment_id))
        return installment

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self._booking_repo.get_by_id(booking_id)
        if booking is None:
            logger.warning("booking_not_found", booking_id=str(booking_id))
            raise BookingNotFoundException(str(booking_id))
        return booking

    async def _lock_schedulable_booking(self, booking_id: UUID) -> Booking:
        """
        Lock the booking row for the rest of the unit of work.

        Reconciliations of the same booking wait on the lock, so the paid
        amount cannot move while its schedule is being rewritten.
        """
        booking = await self._booking_repo.get_for_update(booking_id)
        if booking is None:
            logger.warning("booking_not_found", booking_id=str(booking_id))
            raise BookingNotFoundException(str(booking_id))
        if booking.status not in SCHEDULABLE_STATUSES:
            raise BookingNotActiveException(str(booking_id), booking.status.value)
        return booking

    async def get_charge_context(self, installment_id: UUID) -> Tuple[Installment, Booking]:
        """Installment plus the booking holding its payment method."""
        installment = await self.get_installment(installment_id)
        booking = await self._get_booking(installment.booking_id)
        return installment, booking

    async def list_due(self, now: Optional[datetime] = None, limit: int = 100) -> List[Installment]:
        """Pending installments whose due date has arrived."""
        now = now or utcnow()
        return await self._installment_repo.list_due(now.date(), limit)

    async def list_retry_ready(
        self,
        now: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Installment]:
        """Failed installments whose retry time has passed."""
        now = now or utcnow()
        return await self._installment_repo.list_retry_ready(now, limit)

    async def list_exhausted(self, limit: int = 100) -> List[Installment]:
        return await self._installment_repo.list_exhausted(limit)

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def generate_schedule(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[Installment]:
        """
        Replace a booking's outstanding installments with a fresh schedule.

        Pending and failed installments are cancelled. Paid installments
        are kept, and amounts still in flight are left out of the new
        schedule so they are never collected twice.

        Args:
            booking_id: The booking to schedule
            now: Base time for the schedule, defaults to the current time

        Returns:
            The newly created installments, empty if nothing remains

        Raises:
            BookingNotFoundException: If the booking does not exist
            BookingNotActiveException: If the booking is completed or cancelled
        """
        now = now or utcnow()
        booking = await self._lock_schedulable_booking(booking_id)

        log = logger.bind(booking_id=str(booking_id))

        cancelled = await self._installment_repo.cancel_outstanding(booking_id)
        outstanding = await self._booking_repo.outstanding_cents(booking_id)

        if outstanding <= 0:
            log.info("schedule_not_needed", cancelled=cancelled)
            return []

        payments = scheduling.generate_schedule(
            outstanding,
            booking.payment_frequency,
            booking.cutoff_date,
            now,
            self._settings,
        )
        installments = [
            Installment(
                booking_id=booking_id,
                due_date=payment.due_date,
                amount_cents=payment.amount_cents,
                created_at=now,
            )
            for payment in payments
        ]
        await self._installment_repo.add_all(installments)

        log.info(
            "schedule_generated",
            frequency=booking.payment_frequency.value,
            outstanding_cents=outstanding,
            num_installments=len(installments),
            cancelled=cancelled,
        )
        return installments

    async def change_frequency(
        self,
        booking_id: UUID,
        frequency: PaymentFrequency,
        now: Optional[datetime] = None,
    ) -> List[Installment]:
        """
        Switch a booking to a new payment frequency and reschedule.

        Raises:
            BookingNotFoundException: If the booking does not exist
            BookingNotActiveException: If the booking is completed or cancelled
        """
        booking = await self._lock_schedulable_booking(booking_id)

        await self._booking_repo.update_frequency(booking_id, frequency)
        logger.info(
            "frequency_changed",
            booking_id=str(booking_id),
            old_frequency=booking.payment_frequency.value,
            new_frequency=frequency.value,
        )
        return await self.generate_schedule(booking_id, now)

    async def pay_off_early(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[Installment]:
        """
        Collapse the outstanding balance into one installment due today.

        Returns:
            The new installment, None if nothing is left to collect
        """
        now = now or utcnow()
        await self._lock_schedulable_booking(booking_id)

        cancelled = await self._installment_repo.cancel_outstanding(booking_id)
        outstanding = await self._booking_repo.outstanding_cents(booking_id)

        if outstanding <= 0:
            logger.info("payoff_not_needed", booking_id=str(booking_id), cancelled=cancelled)
            return None

        installment = Installment(
            booking_id=booking_id,
            due_date=now.date(),
            amount_cents=outstanding,
            created_at=now,
        )
        await self._installment_repo.add_all([installment])

        logger.info(
            "payoff_scheduled",
            booking_id=str(booking_id),
            installment_id=str(installment.id),
            amount_cents=outstanding,
            cancelled=cancelled,
        )
        return installment

    async def cancel_booking(self, booking_id: UUID) -> int:
        """
        Cancel a booking and its outstanding installments.

        Returns:
            Number of installments cancelled
        """
        booking = await self._get_booking(booking_id)
        moved = await self._booking_repo.transition_status(
            booking_id, SCHEDULABLE_STATUSES, BookingStatus.CANCELLED
        )
        if not moved:
            raise BookingNotActiveException(str(booking_id), booking.status.value)

        cancelled = await self._installment_repo.cancel_outstanding(booking_id)
        logger.info("booking_cancelled", booking_id=str(booking_id), cancelled=cancelled)
        return cancelled

    # -------------------------------------------------------------------------
    # Charge lifecycle
    # -------------------------------------------------------------------------

    async def claim(self, installment_id: UUID, now: Optional[datetime] = None) -> bool:
        """
        Move an eligible installment to processing.

        Only one caller can win the claim for a given attempt. A pending
        installment is eligible once its due date has arrived, a failed
        one once its next_retry_at has passed.

        Returns:
            True if this caller owns the charge attempt
        """
        now = now or utcnow()
        claimed = await self._installment_repo.claim(installment_id, now.date(), now)

        if claimed:
            logger.info("installment_claimed", installment_id=str(installment_id))
        else:
            record_claim_conflict()
            logger.info("installment_claim_skipped", installment_id=str(installment_id))

        return claimed

    async def record_outcome(
        self,
        installment_id: UUID,
        outcome: ChargeOutcome,
        now: Optional[datetime] = None,
    ) -> OutcomeResult:
        """
        Apply a charge outcome to a processing installment.

        On success the installment becomes paid and its amount is applied
        to the booking in the same unit of work. On failure the attempt
        count grows and the next retry is scheduled, or none once the
        retry policy is exhausted.

        Recording against an installment that is not processing changes
        nothing and returns applied=False.

        Raises:
            InstallmentNotFoundException: If the installment does not exist
            InvalidOutcomeException: If a success carries no transaction_ref
        """
        now = now or utcnow()
        installment = await self.get_installment(installment_id)

        log = logger.bind(
            installment_id=str(installment_id),
            booking_id=str(installment.booking_id),
            outcome=outcome.status.value,
        )

        if outcome.succeeded and not outcome.transaction_ref:
            raise InvalidOutcomeException("A succeeded outcome needs a transaction_ref")

        if installment.status != InstallmentStatus.PROCESSING:
            if outcome.succeeded and installment.status != InstallmentStatus.PAID:
                # Money moved but the installment was already failed or cancelled.
                log.error(
                    "late_success_ignored",
                    status=installment.status.value,
                    transaction_ref=outcome.transaction_ref,
                )
            else:
                log.info("outcome_ignored", status=installment.status.value)
            return OutcomeResult(installment=installment, applied=False)

        failure_code = outcome.resolved_failure_code
        record_charge_outcome(failure_code.value if failure_code else outcome.status.value)

        if outcome.succeeded:
            return await self._record_success(installment, outcome, now, log)
        return await self._record_failure(installment, outcome, now, log)

    async def _record_success(self, installment, outcome, now, log) -> OutcomeResult:
        applied = await self._installment_repo.transition_status(
            installment.id,
            [InstallmentStatus.PROCESSING],
            InstallmentStatus.PAID,
            paid_at=now,
            transaction_ref=outcome.transaction_ref,
            next_retry_at=None,
        )
        if not applied:
            log.info("outcome_lost_race")
            return OutcomeResult(
                installment=await self.get_installment(installment.id),
                applied=False,
            )

        record_amount_collected(installment.amount_cents)
        log.info(
            "installment_paid",
            amount_cents=installment.amount_cents,
            transaction_ref=outcome.transaction_ref,
            attempts=installment.attempts,
        )

        paid = await self.get_installment(installment.id)
        booking, completed = await self.reconcile(paid, now)

        if self._notifier and booking is not None:
            self._queue(self._notifier.send_installment_paid, paid, booking)
            if completed:
                self._queue(self._notifier.send_booking_completed, booking)

        return OutcomeResult(
            installment=await self.get_installment(installment.id),
            applied=True,
            booking=booking,
            booking_completed=completed,
        )

    async def _record_failure(self, installment, outcome, now, log) -> OutcomeResult:
        attempts = installment.attempts + 1
        next_retry_at = scheduling.schedule_retry(attempts, now, self._retry_policy)
        failure_code = outcome.resolved_failure_code
        # A timed-out charge may still land, so its retry reuses the same key.
        key_attempt = (
            installment.key_attempt if failure_code == FailureCode.TIMEOUT else attempts
        )

        applied = await self._installment_repo.transition_status(
            installment.id,
            [InstallmentStatus.PROCESSING],
            InstallmentStatus.FAILED,
            attempts=attempts,
            key_attempt=key_attempt,
            failure_code=failure_code.value,
            failure_reason=outcome.reason,
            next_retry_at=next_retry_at,
            transaction_ref=outcome.transaction_ref or installment.transaction_ref,
        )
        if not applied:
            log.info("outcome_lost_race")
            return OutcomeResult(
                installment=await self.get_installment(installment.id),
                applied=False,
            )

        if next_retry_at is None:
            record_retries_exhausted()
            log.warning(
                "installment_retries_exhausted",
                attempts=attempts,
                failure_code=failure_code.value,
                reason=outcome.reason,
            )
        else:
            record_retry_scheduled(attempts)
            log.info(
                "installment_retry_scheduled",
                attempts=attempts,
                failure_code=failure_code.value,
                next_retry_at=next_retry_at.isoformat(),
            )

        failed = await self.get_installment(installment.id)
        if self._notifier:
            booking = await self._booking_repo.get_by_id(installment.booking_id)
            if booking is not None:
                self._queue(self._notifier.send_installment_failed, failed, booking)

        return OutcomeResult(installment=failed, applied=True)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def reconcile(
        self,
        installment: Installment,
        now: Optional[datetime] = None,
    ) -> Tuple[Optional[Booking], bool]:
        """
        Apply a paid installment's amount to its booking exactly once.

        Returns:
            (booking after the update, whether the booking became completed).
            The booking is None if the installment was already reconciled.
        """
        now = now or utcnow()
        if not await self._installment_repo.mark_reconciled(installment.id, now):
            logger.info("installment_already_reconciled", installment_id=str(installment.id))
            return None, False

        booking, completed = await self._apply_to_booking(
            installment.booking_id, installment.amount_cents
        )
        logger.info(
            "installment_reconciled",
            installment_id=str(installment.id),
            booking_id=str(booking.id),
            amount_paid_cents=booking.amount_paid_cents,
            total_cents=booking.total_cents,
            booking_status=booking.status.value,
        )
        return booking, completed

    async def record_deposit(self, booking_id: UUID, amount_cents: int) -> Tuple[Booking, bool]:
        """
        Apply a deposit taken at checkout to a new booking.

        Returns:
            (booking after the update, whether the deposit completed it)
        """
        booking, completed = await self._apply_to_booking(booking_id, amount_cents)
        logger.info(
            "deposit_recorded",
            booking_id=str(booking_id),
            amount_cents=amount_cents,
            booking_status=booking.status.value,
        )
        return booking, completed

    async def _apply_to_booking(self, booking_id: UUID, amount_cents: int) -> Tuple[Booking, bool]:
        booking = await self._booking_repo.increment_amount_paid(booking_id, amount_cents)
        if booking is None:
            raise BookingNotFoundException(str(booking_id))

        target = scheduling.derive_booking_status(
            booking.amount_paid_cents, booking.total_cents, booking.status
        )
        completed = False
        if target != booking.status:
            completed = await self._booking_repo.transition_status(
                booking.id, [booking.status], target
            )
            if completed:
                booking.status = target
                record_booking_completed()

        return booking, completed

    async def repair_unreconciled(
        self,
        now: Optional[datetime] = None,
        limit: int = 100,
    ) -> int:
        """
        Reconcile paid installments whose amount never reached the booking.

        Returns:
            Number of installments repaired
        """
        now = now or utcnow()
        repaired = 0
        for installment in await self._installment_repo.list_unreconciled(limit):
            booking, completed = await self.reconcile(installment, now)
            if booking is None:
                continue
            repaired += 1
            record_reconciliation_repair()
            logger.warning(
                "installment_reconciliation_repaired",
                installment_id=str(installment.id),
                booking_id=str(booking.id),
            )
            if completed and self._notifier:
                self._queue(self._notifier.send_booking_completed, booking)
        return repaired

    async def fail_stale_processing(
        self,
        claimed_before: datetime,
        now: Optional[datetime] = None,
        limit: int = 100,
    ) -> int:
        """
        Fail processing installments claimed before the given time.

        These are attempts whose charger died before recording an outcome.
        They are failed with a timeout so the retry policy picks them up.

        Returns:
            Number of installments failed
        """
        now = now or utcnow()
        timeout_seconds = (now - claimed_before).total_seconds()
        failed = 0
        for installment in await self._installment_repo.list_stale_processing(
            claimed_before, limit
        ):
            result = await self.record_outcome(
                installment.id, ChargeOutcome.timeout(timeout_seconds), now
            )
            if result.applied:
                failed += 1
                record_stale_processing()
                logger.warning(
                    "stale_processing_failed",
                    installment_id=str(installment.id),
                    claimed_at=installment.claimed_at.isoformat() if installment.claimed_at else None,
                )
        return failed


def stale_claim_cutoff(now: datetime, charge_timeout_seconds: float, grace_seconds: float) -> datetime:
    """Claims older than this are considered abandoned."""
    return now - timedelta(seconds=charge_timeout_seconds + grace_seconds)
