"""
Integration tests for the HTTP API.

These tests verify:
1. Booking creation, retrieval and validation errors
2. Schedule regeneration, frequency change, pay-off and cancellation
3. Installment listing, manual claim and outcome recording
4. Poll cycle trigger and error response format
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from layaway.core.clock import utcnow


async def create_booking(client: AsyncClient, body: dict) -> dict:
    response = await client.post("/v1/bookings", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Bookings
# =============================================================================

class TestBookingEndpoints:

    @pytest.mark.asyncio
    async def test_create_booking_returns_schedule(
        self,
        client: AsyncClient,
        booking_request: dict,
    ):
        data = await create_booking(client, booking_request)

        assert data["status"] == "active"
        assert data["total_cents"] == 100000
        assert data["amount_paid_cents"] == 0
        assert data["payment_frequency"] == "bi-weekly"

        installments = data["installments"]
        assert len(installments) == 7
        assert sum(i["amount_cents"] for i in installments) == 100000
        assert installments[0]["due_date"] == utcnow().date().isoformat()
        assert all(i["status"] == "pending" for i in installments)

    @pytest.mark.asyncio
    async def test_get_booking(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)

        response = await client.get(f"/v1/bookings/{created['booking_id']}")

        assert response.status_code == 200
        assert response.json() == created

    @pytest.mark.asyncio
    async def test_unknown_booking_returns_404(self, client: AsyncClient):
        response = await client.get(f"/v1/bookings/{uuid4()}")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "BOOKING_NOT_FOUND"
        assert "message" in body
        assert "request_id" in body

    @pytest.mark.asyncio
    async def test_past_cutoff_rejected(self, client: AsyncClient, booking_request: dict):
        booking_request["cutoff_date"] = (utcnow().date() - timedelta(days=1)).isoformat()

        response = await client.post("/v1/bookings", json=booking_request)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_BOOKING_REQUEST"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [
            ("total_cents", 0),
            ("deposit_cents", -5),
            ("payment_frequency", "daily"),
            ("customer_ref", "   "),
        ],
    )
    async def test_schema_validation(
        self,
        client: AsyncClient,
        booking_request: dict,
        field: str,
        value,
    ):
        booking_request[field] = value

        response = await client.post("/v1/bookings", json=booking_request)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_change_frequency(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)

        response = await client.put(
            f"/v1/bookings/{created['booking_id']}/frequency",
            json={"payment_frequency": "monthly"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_frequency"] == "monthly"

        live = [i for i in data["installments"] if i["status"] == "pending"]
        cancelled = [i for i in data["installments"] if i["status"] == "cancelled"]
        assert len(cancelled) == 7
        assert len(live) == 3
        assert sum(i["amount_cents"] for i in live) == 100000

    @pytest.mark.asyncio
    async def test_regenerate_schedule(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)

        response = await client.post(f"/v1/bookings/{created['booking_id']}/schedule")

        assert response.status_code == 200
        statuses = [i["status"] for i in response.json()["installments"]]
        assert statuses.count("pending") == 7
        assert statuses.count("cancelled") == 7

    @pytest.mark.asyncio
    async def test_pay_off_charges_remaining_balance(
        self,
        client: AsyncClient,
        booking_request: dict,
        mock_charge_processor,
    ):
        created = await create_booking(client, booking_request)
        booking_id = created["booking_id"]

        response = await client.post(f"/v1/bookings/{booking_id}/payoff")

        assert response.status_code == 202
        pending = [i for i in response.json()["installments"] if i["status"] == "pending"]
        assert [i["amount_cents"] for i in pending] == [100000]

        # The background charge has run by the time the transport returns.
        assert mock_charge_processor.call_count == 1
        booking = (await client.get(f"/v1/bookings/{booking_id}")).json()
        assert booking["status"] == "completed"
        assert booking["amount_paid_cents"] == 100000

    @pytest.mark.asyncio
    async def test_cancel_booking(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)
        booking_id = created["booking_id"]

        response = await client.post(f"/v1/bookings/{booking_id}/cancel")

        assert response.status_code == 200
        assert response.json()["installments_cancelled"] == 7

        again = await client.post(f"/v1/bookings/{booking_id}/cancel")
        assert again.status_code == 409
        assert again.json()["error"] == "BOOKING_NOT_ACTIVE"

        frequency = await client.put(
            f"/v1/bookings/{booking_id}/frequency",
            json={"payment_frequency": "weekly"},
        )
        assert frequency.status_code == 409


# =============================================================================
# Installments
# =============================================================================

class TestInstallmentEndpoints:

    @pytest.mark.asyncio
    async def test_list_due(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)

        today = await client.get("/v1/installments/due")
        later = await client.get(
            "/v1/installments/due",
            params={"now": (utcnow() + timedelta(days=15)).isoformat()},
        )

        assert today.status_code == 200
        assert today.json()["count"] == 1
        assert today.json()["installments"][0]["booking_id"] == created["booking_id"]
        assert later.json()["count"] == 2

    @pytest.mark.asyncio
    async def test_claim_and_record_outcome(self, client: AsyncClient, booking_request: dict):
        created = await create_booking(client, booking_request)
        installment_id = created["installments"][0]["installment_id"]

        claim = await client.post(f"/v1/installments/{installment_id}/claim")
        assert claim.json() == {"installment_id": installment_id, "claimed": True}

        second_claim = await client.post(f"/v1/installments/{installment_id}/claim")
        assert second_claim.json()["claimed"] is False

        outcome = await client.post(
            f"/v1/installments/{installment_id}/outcome",
            json={"status": "succeeded", "transaction_ref": "pi_manual_1"},
        )
        assert outcome.status_code == 200
        assert outcome.json()["applied"] is True
        assert outcome.json()["installment"]["status"] == "paid"

        duplicate = await client.post(
            f"/v1/installments/{installment_id}/outcome",
            json={"status": "succeeded", "transaction_ref": "pi_manual_1"},
        )
        assert duplicate.json()["applied"] is False

        booking = (await client.get(f"/v1/bookings/{created['booking_id']}")).json()
        assert booking["amount_paid_cents"] == created["installments"][0]["amount_cents"]

    @pytest.mark.asyncio
    async def test_failed_outcome_then_retry_ready(
        self,
        client: AsyncClient,
        booking_request: dict,
    ):
        created = await create_booking(client, booking_request)
        installment_id = created["installments"][0]["installment_id"]
        await client.post(f"/v1/installments/{installment_id}/claim")

        outcome = await client.post(
            f"/v1/installments/{installment_id}/outcome",
            json={"status": "declined", "reason": "Insufficient funds"},
        )
        installment = outcome.json()["installment"]
        assert installment["status"] == "failed"
        assert installment["attempts"] == 1
        assert installment["failure_code"] == "declined"
        assert installment["next_retry_at"].endswith("Z")

        ready_now = await client.get("/v1/installments/retry-ready")
        ready_later = await client.get(
            "/v1/installments/retry-ready",
            params={"now": (utcnow() + timedelta(minutes=2)).isoformat()},
        )
        assert ready_now.json()["count"] == 0
        assert ready_later.json()["count"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"status": "succeeded"},
            {"status": "declined"},
        ],
    )
    async def test_incomplete_outcome_rejected(
        self,
        client: AsyncClient,
        booking_request: dict,
        body: dict,
    ):
        created = await create_booking(client, booking_request)
        installment_id = created["installments"][0]["installment_id"]

        response = await client.post(f"/v1/installments/{installment_id}/outcome", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_OUTCOME"

    @pytest.mark.asyncio
    async def test_unknown_installment(self, client: AsyncClient):
        response = await client.post(f"/v1/installments/{uuid4()}/claim")

        assert response.status_code == 404
        assert response.json()["error"] == "INSTALLMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_exhausted_list_starts_empty(self, client: AsyncClient):
        response = await client.get("/v1/installments/exhausted")

        assert response.status_code == 200
        assert response.json() == {"installments": [], "count": 0}


# =============================================================================
# Poller & Health
# =============================================================================

class TestOperationalEndpoints:

    @pytest.mark.asyncio
    async def test_run_poll_cycle(
        self,
        client: AsyncClient,
        booking_request: dict,
        mock_charge_processor,
    ):
        created = await create_booking(client, booking_request)

        response = await client.post("/v1/poller/run")

        assert response.status_code == 200
        summary = response.json()
        assert summary["due"] == 1
        assert summary["paid"] == 1
        assert mock_charge_processor.call_count == 1

        booking = (await client.get(f"/v1/bookings/{created['booking_id']}")).json()
        assert booking["installments"][0]["status"] == "paid"
        assert booking["amount_paid_cents"] == booking["installments"][0]["amount_cents"]

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "ok"
        assert body["poller"] == "stopped"

    @pytest.mark.asyncio
    async def test_health_reports_running_poller(self, client: AsyncClient, poller):
        poller.start()
        try:
            response = await client.get("/health")
        finally:
            await poller.stop()

        assert response.json()["poller"] == "running"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
