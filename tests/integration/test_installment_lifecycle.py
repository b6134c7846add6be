"""
Integration tests for the installment lifecycle.

These tests verify:
1. Claims are exclusive and respect due dates and retry times
2. Success outcomes mark installments paid and reconcile exactly once
3. Failures schedule retries and exhaust after max attempts
4. Unreconciled and stale installments are repaired
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from layaway.application.services import InstallmentService
from layaway.core.clock import utcnow
from layaway.domain.entities import (
    BookingStatus,
    ChargeOutcome,
    ChargeStatus,
    InstallmentStatus,
)
from layaway.domain.exceptions import InstallmentNotFoundException, InvalidOutcomeException


# =============================================================================
# Claim
# =============================================================================

class TestClaim:
    """Tests for the processing claim."""

    @pytest.mark.asyncio
    async def test_claim_due_installment(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)

        assert await installment_service.claim(installment.id) is True

        [claimed] = await load_installments(booking.id)
        assert claimed.status == InstallmentStatus.PROCESSING
        assert claimed.claimed_at is not None

    @pytest.mark.asyncio
    async def test_second_claim_is_rejected(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)

        assert await installment_service.claim(installment.id) is True
        assert await installment_service.claim(installment.id) is False

    @pytest.mark.asyncio
    async def test_future_installment_cannot_be_claimed(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        tomorrow = utcnow().date() + timedelta(days=1)
        booking = await seed_booking(installments=[(tomorrow, 100000)])
        [installment] = await load_installments(booking.id)

        assert await installment_service.claim(installment.id) is False

        [unchanged] = await load_installments(booking.id)
        assert unchanged.status == InstallmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_concurrent_claims_produce_one_winner(
        self,
        service_scope,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        now = utcnow()

        async def claim():
            async with service_scope() as service:
                return await service.claim(installment.id, now)

        results = await asyncio.gather(*(claim() for _ in range(5)))

        assert sorted(results) == [False, False, False, False, True]


# =============================================================================
# Success & Reconciliation
# =============================================================================

class TestSuccessOutcome:
    """Tests for recording successful charges."""

    @pytest.mark.asyncio
    async def test_success_marks_paid_and_applies_amount(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_booking,
        mock_notification_client,
    ):
        today = utcnow().date()
        booking = await seed_booking(
            total_cents=100000,
            installments=[(today, 50000), (today + timedelta(days=14), 50000)],
        )
        first = (await load_booking(booking.id)).installments[0]

        await installment_service.claim(first.id)
        result = await installment_service.record_outcome(
            first.id, ChargeOutcome.success("pi_first")
        )

        assert result.applied is True
        assert result.booking_completed is False
        assert result.installment.status == InstallmentStatus.PAID
        assert result.installment.transaction_ref == "pi_first"
        assert result.installment.paid_at is not None
        assert result.installment.reconciled_at is not None

        updated = await load_booking(booking.id)
        assert updated.amount_paid_cents == 50000
        assert updated.status == BookingStatus.ACTIVE

        assert mock_notification_client.sent == []
        assert await installment_service.send_notifications() == 1
        assert len(mock_notification_client.events("installment_paid")) == 1

    @pytest.mark.asyncio
    async def test_duplicate_success_applies_once(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_booking,
        load_installments,
    ):
        booking = await seed_booking(total_cents=40000)
        [installment] = await load_installments(booking.id)

        await installment_service.claim(installment.id)
        first = await installment_service.record_outcome(
            installment.id, ChargeOutcome.success("pi_1")
        )
        second = await installment_service.record_outcome(
            installment.id, ChargeOutcome.success("pi_1")
        )

        assert first.applied is True
        assert second.applied is False
        assert (await load_booking(booking.id)).amount_paid_cents == 40000

    @pytest.mark.asyncio
    async def test_final_payment_completes_booking(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_booking,
        load_installments,
        mock_notification_client,
    ):
        booking = await seed_booking(
            total_cents=1000,
            amount_paid_cents=900,
            installments=[(utcnow().date(), 100)],
        )
        [installment] = await load_installments(booking.id)

        await installment_service.claim(installment.id)
        result = await installment_service.record_outcome(
            installment.id, ChargeOutcome.success("pi_last")
        )

        assert result.booking_completed is True
        completed = await load_booking(booking.id)
        assert completed.amount_paid_cents == 1000
        assert completed.status == BookingStatus.COMPLETED

        await installment_service.send_notifications()
        assert len(mock_notification_client.events("booking_completed")) == 1

    @pytest.mark.asyncio
    async def test_success_requires_transaction_ref(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        await installment_service.claim(installment.id)

        with pytest.raises(InvalidOutcomeException):
            await installment_service.record_outcome(
                installment.id, ChargeOutcome(status=ChargeStatus.SUCCEEDED)
            )

    @pytest.mark.asyncio
    async def test_outcome_for_unclaimed_installment_is_ignored(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
        load_booking,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)

        result = await installment_service.record_outcome(
            installment.id, ChargeOutcome.success("pi_ghost")
        )

        assert result.applied is False
        assert result.installment.status == InstallmentStatus.PENDING
        assert (await load_booking(booking.id)).amount_paid_cents == 0

    @pytest.mark.asyncio
    async def test_unknown_installment_raises(self, installment_service: InstallmentService):
        with pytest.raises(InstallmentNotFoundException):
            await installment_service.record_outcome(uuid4(), ChargeOutcome.success("pi"))


# =============================================================================
# Failures & Retries
# =============================================================================

class TestFailureOutcome:
    """Tests for failed charges and the retry schedule."""

    @pytest.mark.asyncio
    async def test_decline_schedules_retry(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
        mock_notification_client,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        now = utcnow()

        await installment_service.claim(installment.id, now)
        result = await installment_service.record_outcome(
            installment.id, ChargeOutcome.declined("Insufficient funds"), now
        )

        failed = result.installment
        assert result.applied is True
        assert failed.status == InstallmentStatus.FAILED
        assert failed.attempts == 1
        assert failed.failure_code == "declined"
        assert failed.failure_reason == "Insufficient funds"
        assert failed.idempotency_key == f"{installment.id}:1"
        assert failed.next_retry_at == now + timedelta(minutes=1)

        await installment_service.send_notifications()
        [event] = mock_notification_client.events("installment_failed")
        assert event["retries_exhausted"] is False

    @pytest.mark.asyncio
    async def test_retry_not_claimable_before_next_retry_at(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        now = utcnow()

        await installment_service.claim(installment.id, now)
        await installment_service.record_outcome(
            installment.id, ChargeOutcome.error("gateway down"), now
        )

        assert await installment_service.list_retry_ready(now + timedelta(seconds=30)) == []
        assert await installment_service.claim(installment.id, now + timedelta(seconds=30)) is False

        ready = await installment_service.list_retry_ready(now + timedelta(minutes=1))
        assert [i.id for i in ready] == [installment.id]
        assert await installment_service.claim(installment.id, now + timedelta(minutes=1)) is True

    @pytest.mark.asyncio
    async def test_authentication_required_is_flagged(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)

        await installment_service.claim(installment.id)
        result = await installment_service.record_outcome(
            installment.id,
            ChargeOutcome.authentication_required("3DS needed", transaction_ref="pi_auth"),
        )

        assert result.installment.failure_code == "authentication_required"
        assert result.installment.requires_customer_action is True
        assert result.installment.transaction_ref == "pi_auth"
        assert result.installment.next_retry_at is not None

    @pytest.mark.asyncio
    async def test_retries_exhaust_after_six_failures(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
        load_booking,
        mock_notification_client,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        now = utcnow()
        retry_gaps = []

        for attempt in range(1, 7):
            assert await installment_service.claim(installment.id, now) is True
            result = await installment_service.record_outcome(
                installment.id, ChargeOutcome.declined("Do not honor"), now
            )
            assert result.installment.attempts == attempt
            if attempt < 6:
                retry_gaps.append(result.installment.next_retry_at - now)
                now = result.installment.next_retry_at

        assert [gap.total_seconds() / 60 for gap in retry_gaps] == [1, 1440, 2880, 4320, 4320]

        exhausted = result.installment
        assert exhausted.status == InstallmentStatus.FAILED
        assert exhausted.next_retry_at is None
        assert exhausted.retries_exhausted is True

        assert await installment_service.claim(installment.id, now + timedelta(days=30)) is False
        assert [i.id for i in await installment_service.list_exhausted()] == [installment.id]

        # Exhaustion is reported, never auto-cancelled.
        assert (await load_booking(booking.id)).status == BookingStatus.ACTIVE
        assert await installment_service.send_notifications() == 6
        assert mock_notification_client.events("installment_failed")[-1]["retries_exhausted"] is True


# =============================================================================
# Repair Paths
# =============================================================================

class TestRepair:
    """Tests for the reconciliation repair and stale claim sweep."""

    @pytest.mark.asyncio
    async def test_repair_unreconciled_paid_installment(
        self,
        installment_service: InstallmentService,
        installment_repo,
        seed_booking,
        load_installments,
        load_booking,
    ):
        booking = await seed_booking(total_cents=30000)
        [installment] = await load_installments(booking.id)

        # Paid without the reconciliation step, as after a crash.
        await installment_repo.transition_status(
            installment.id,
            [InstallmentStatus.PENDING],
            InstallmentStatus.PAID,
            paid_at=utcnow(),
            transaction_ref="pi_orphan",
        )

        assert await installment_service.repair_unreconciled() == 1
        assert await installment_service.repair_unreconciled() == 0

        repaired = await load_booking(booking.id)
        assert repaired.amount_paid_cents == 30000
        assert repaired.status == BookingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_stale_processing_failed_with_timeout(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        yesterday = utcnow().date() - timedelta(days=1)
        booking = await seed_booking(installments=[(yesterday, 100000)])
        [installment] = await load_installments(booking.id)
        now = utcnow()

        await installment_service.claim(installment.id, now - timedelta(hours=1))

        failed = await installment_service.fail_stale_processing(
            claimed_before=now - timedelta(minutes=10), now=now
        )

        assert failed == 1
        [timed_out] = await load_installments(booking.id)
        assert timed_out.status == InstallmentStatus.FAILED
        assert timed_out.failure_code == "timeout"
        assert timed_out.attempts == 1
        assert timed_out.next_retry_at == now + timedelta(minutes=1)
        # The abandoned charge may still land, so the retry reuses its key.
        assert timed_out.idempotency_key == f"{installment.id}:0"

    @pytest.mark.asyncio
    async def test_recent_claim_is_not_stale(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)
        now = utcnow()

        await installment_service.claim(installment.id, now)

        assert await installment_service.fail_stale_processing(
            claimed_before=now - timedelta(minutes=10), now=now
        ) == 0


# =============================================================================
# Notifications
# =============================================================================

class TestNotificationsAfterCommit:
    """Events leave only once the outcome that produced them has committed."""

    @pytest.mark.asyncio
    async def test_scope_sends_after_commit(
        self,
        service_scope,
        seed_booking,
        load_installments,
        mock_notification_client,
    ):
        booking = await seed_booking(total_cents=20000)
        [installment] = await load_installments(booking.id)

        async with service_scope() as service:
            await service.claim(installment.id)
            await service.record_outcome(installment.id, ChargeOutcome.success("pi_scope"))
            assert mock_notification_client.sent == []

        assert [e["event"] for e in mock_notification_client.sent] == [
            "installment_paid",
            "booking_completed",
        ]

    @pytest.mark.asyncio
    async def test_rolled_back_scope_sends_nothing(
        self,
        service_scope,
        seed_booking,
        load_installments,
        load_booking,
        mock_notification_client,
    ):
        booking = await seed_booking(total_cents=20000)
        [installment] = await load_installments(booking.id)
        async with service_scope() as service:
            await service.claim(installment.id)

        with pytest.raises(RuntimeError):
            async with service_scope() as service:
                await service.record_outcome(installment.id, ChargeOutcome.success("pi_lost"))
                raise RuntimeError("commit failed")

        assert mock_notification_client.sent == []
        [unchanged] = await load_installments(booking.id)
        assert unchanged.status == InstallmentStatus.PROCESSING
        assert (await load_booking(booking.id)).amount_paid_cents == 0

    @pytest.mark.asyncio
    async def test_queue_is_drained_once(
        self,
        installment_service: InstallmentService,
        seed_booking,
        load_installments,
        mock_notification_client,
    ):
        booking = await seed_booking()
        [installment] = await load_installments(booking.id)

        await installment_service.claim(installment.id)
        await installment_service.record_outcome(
            installment.id, ChargeOutcome.declined("Do not honor")
        )

        assert await installment_service.send_notifications() == 1
        assert await installment_service.send_notifications() == 0
        assert len(mock_notification_client.sent) == 1
