"""Unit tests for the HTTP notification client's retry behaviour."""

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from layaway.domain.entities import (
    Booking,
    Installment,
    InstallmentStatus,
    PaymentFrequency,
)
from layaway.infrastructure.clients import HttpNotificationClient


@pytest.fixture
def booking() -> Booking:
    return Booking(
        customer_ref="cus_1",
        payment_method_ref="pm_1",
        trip_id="trip_1",
        total_cents=10000,
        payment_frequency=PaymentFrequency.WEEKLY,
        cutoff_date=date(2026, 6, 1),
    )


@pytest.fixture
def exhausted_installment(booking) -> Installment:
    return Installment(
        booking_id=booking.id,
        due_date=date(2026, 5, 1),
        amount_cents=5000,
        status=InstallmentStatus.FAILED,
        attempts=6,
        failure_code="declined",
        failure_reason="Your card was declined.",
    )


def _response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("POST", "http://notify"))


class TestHttpNotificationClient:

    @pytest.mark.asyncio
    async def test_success_first_try(self, booking):
        client = HttpNotificationClient(base_url="http://notify", max_retries=3)

        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=_response(202))) as post:
            assert await client.send_booking_completed(booking) is True

        assert post.await_count == 1
        payload = post.await_args.kwargs["json"]
        assert payload["event"] == "booking_completed"
        assert payload["booking_id"] == str(booking.id)

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, booking, exhausted_installment):
        client = HttpNotificationClient(base_url="http://notify", max_retries=3)
        responses = [_response(503), httpx.ConnectError("refused"), _response(200)]

        with patch.object(httpx.AsyncClient, "post", AsyncMock(side_effect=responses)) as post, \
                patch("asyncio.sleep", AsyncMock()):
            assert await client.send_installment_failed(exhausted_installment, booking) is True

        assert post.await_count == 3
        payload = post.await_args.kwargs["json"]
        assert payload["event"] == "installment_failed"
        assert payload["retries_exhausted"] is True
        assert payload["operator_alert"] is True
        assert payload["requires_customer_action"] is False

    @pytest.mark.asyncio
    async def test_gives_up_without_raising(self, booking, exhausted_installment):
        client = HttpNotificationClient(base_url="http://notify", max_retries=2)

        with patch.object(
            httpx.AsyncClient, "post", AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        ) as post, patch("asyncio.sleep", AsyncMock()):
            assert await client.send_installment_paid(exhausted_installment, booking) is False

        assert post.await_count == 2
