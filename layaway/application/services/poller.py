"""Installment poller - finds due and retry-ready installments and charges them."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncContextManager, Callable, Optional
from uuid import UUID

import structlog

from layaway.core.clock import utcnow
from layaway.core.config import settings
from layaway.core.metrics import record_poll_batch, track_poll_cycle_latency
from layaway.domain.entities import Booking, ChargeOutcome, Installment
from layaway.domain.interfaces import ChargeProcessor
from .installment_service import InstallmentService, stale_claim_cutoff

logger = structlog.get_logger(__name__)

ServiceScope = Callable[[], AsyncContextManager[InstallmentService]]


@dataclass
class PollSummary:
    """Counts from one poll cycle."""

    due: int = 0
    retry: int = 0
    claimed: int = 0
    skipped: int = 0
    paid: int = 0
    failed: int = 0
    errors: int = 0
    repaired: int = 0
    stale: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


class InstallmentPoller:
    """
    Periodic job that charges due and retry-ready installments.

    Each installment is processed in three steps:
        1. claim it in its own transaction (skip if another poller won)
        2. charge the processor with no transaction open
        3. record the outcome in a new transaction

    Running several pollers at once is safe: the claim is a conditional
    update, so each attempt is charged by exactly one of them.
    """

    def __init__(
        self,
        service_scope: ServiceScope,
        charge_processor: ChargeProcessor,
        charge_timeout_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        stale_grace_seconds: Optional[float] = None,
    ):
        self._service_scope = service_scope
        self._charge_processor = charge_processor
        self._charge_timeout = charge_timeout_seconds or settings.charge_timeout_seconds
        self._interval = interval_seconds or settings.poller_interval_seconds
        self._batch_size = batch_size or settings.poller_batch_size
        self._concurrency = concurrency or settings.poller_concurrency
        self._stale_grace = (
            stale_grace_seconds
            if stale_grace_seconds is not None
            else settings.stale_processing_grace_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_cycle(self, now: Optional[datetime] = None) -> PollSummary:
        """
        Run one poll cycle.

        Args:
            now: Clock override; when given every step of the cycle uses it

        Returns:
            PollSummary with per-cycle counts
        """
        fixed_now = now
        now = now or utcnow()
        summary = PollSummary()

        with track_poll_cycle_latency():
            async with self._service_scope() as service:
                summary.stale = await service.fail_stale_processing(
                    stale_claim_cutoff(now, self._charge_timeout, self._stale_grace),
                    now,
                    self._batch_size,
                )
                summary.repaired = await service.repair_unreconciled(now, self._batch_size)
                due = await service.list_due(now, self._batch_size)
                retry = await service.list_retry_ready(now, self._batch_size)

            summary.due = len(due)
            summary.retry = len(retry)
            record_poll_batch(summary.due, summary.retry)

            semaphore = asyncio.Semaphore(self._concurrency)

            async def worker(installment: Installment):
                async with semaphore:
                    return await self._process_safely(installment.id, fixed_now)

            results = await asyncio.gather(*(worker(inst) for inst in due + retry))

        for result in results:
            if result == "skipped":
                summary.skipped += 1
                continue
            if result == "error":
                summary.errors += 1
                continue
            summary.claimed += 1
            if result == "paid":
                summary.paid += 1
            elif result == "failed":
                summary.failed += 1

        logger.info("poll_cycle_completed", **summary.to_dict())
        return summary

    async def _process_safely(self, installment_id: UUID, now: Optional[datetime]) -> str:
        try:
            outcome = await self.process_installment(installment_id, now)
        except Exception:
            # Left in processing; the stale sweep fails it after the grace period.
            logger.exception("installment_processing_failed", installment_id=str(installment_id))
            return "error"
        if outcome is None:
            return "skipped"
        return "paid" if outcome.succeeded else "failed"

    async def process_installment(
        self,
        installment_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[ChargeOutcome]:
        """
        Claim, charge and record a single installment.

        Returns:
            The charge outcome, None if the installment could not be claimed
        """
        async with self._service_scope() as service:
            claimed = await service.claim(installment_id, now or utcnow())
            if not claimed:
                return None
            installment, booking = await service.get_charge_context(installment_id)

        outcome = await self._charge(installment, booking)

        async with self._service_scope() as service:
            await service.record_outcome(installment_id, outcome, now or utcnow())

        return outcome

    async def _charge(self, installment: Installment, booking: Booking) -> ChargeOutcome:
        log = logger.bind(
            installment_id=str(installment.id),
            booking_id=str(booking.id),
            attempt=installment.attempts + 1,
        )
        log.info("charge_started", amount_cents=installment.amount_cents)

        try:
            return await asyncio.wait_for(
                self._charge_processor.charge(
                    customer_ref=booking.customer_ref,
                    payment_method_ref=booking.payment_method_ref,
                    amount_cents=installment.amount_cents,
                    idempotency_key=installment.idempotency_key,
                    metadata={
                        "booking_id": str(booking.id),
                        "installment_id": str(installment.id),
                        "trip_id": booking.trip_id,
                    },
                ),
                timeout=self._charge_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("charge_timeout", timeout_seconds=self._charge_timeout)
            return ChargeOutcome.timeout(self._charge_timeout)
        except Exception as e:
            log.exception("charge_processor_error")
            return ChargeOutcome.error(str(e))

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start polling in the background on the running event loop."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run_forever(), name="installment-poller")

    async def stop(self) -> None:
        """Finish the current cycle and stop polling."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run_forever(self) -> None:
        logger.info("poller_started", interval_seconds=self._interval)
        while not self._stopping.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("poll_cycle_failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
        logger.info("poller_stopped")
