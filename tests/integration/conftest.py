"""
Fixtures for integration tests.

Provides:
- In-memory database shared by the app, services and the poller
- Mock charge processor with scripted outcomes per payment method
- Mock notification client
- Seed helpers for bookings and installments
- Test client for FastAPI app
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from layaway.main import app
from layaway.application.services import InstallmentPoller, InstallmentService
from layaway.core.clock import utcnow
from layaway.core.dependencies import build_service_scope
from layaway.domain.entities import (
    Booking,
    ChargeOutcome,
    Installment,
    InstallmentStatus,
    PaymentFrequency,
)
from layaway.domain.interfaces import ChargeProcessor, NotificationClient
from layaway.infrastructure.database import Base, db_manager
from layaway.infrastructure.repositories import (
    PostgresBookingRepository,
    PostgresInstallmentRepository,
)


# =============================================================================
# Mock Clients
# =============================================================================

class MockChargeProcessor(ChargeProcessor):
    """
    Mock charge processor that records every call.

    Outcomes are chosen by payment method reference:
    - pm_decline: card declined
    - pm_auth: authentication required
    - pm_error: processor raises
    - pm_slow: never answers within the poller timeout
    - anything else: success
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: List[Dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def charge(
        self,
        customer_ref: str,
        payment_method_ref: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ChargeOutcome:
        self.calls.append({
            "customer_ref": customer_ref,
            "payment_method_ref": payment_method_ref,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
            "metadata": metadata or {},
        })

        if self.delay:
            await asyncio.sleep(self.delay)

        if payment_method_ref == "pm_slow":
            await asyncio.sleep(10)
        if payment_method_ref == "pm_error":
            raise RuntimeError("processor exploded")
        if payment_method_ref == "pm_decline":
            return ChargeOutcome.declined("Your card has insufficient funds.")
        if payment_method_ref == "pm_auth":
            return ChargeOutcome.authentication_required(
                "Customer authentication required",
                transaction_ref=f"pi_auth_{len(self.calls)}",
            )
        return ChargeOutcome.success(f"pi_test_{len(self.calls)}")


class MockNotificationClient(NotificationClient):
    """Mock notification client that tracks sent events."""

    def __init__(self):
        self.sent: List[Dict] = []

    def events(self, name: str) -> List[Dict]:
        return [event for event in self.sent if event["event"] == name]

    async def send_installment_paid(self, installment, booking) -> bool:
        self.sent.append({
            "event": "installment_paid",
            "installment_id": str(installment.id),
            "booking_id": str(booking.id),
        })
        return True

    async def send_installment_failed(self, installment, booking) -> bool:
        self.sent.append({
            "event": "installment_failed",
            "installment_id": str(installment.id),
            "booking_id": str(booking.id),
            "attempts": installment.attempts,
            "retries_exhausted": installment.retries_exhausted,
            "requires_customer_action": installment.requires_customer_action,
        })
        return True

    async def send_booking_completed(self, booking) -> bool:
        self.sent.append({"event": "booking_completed", "booking_id": str(booking.id)})
        return True


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """
    Create an in-memory SQLite async engine for testing.

    Every session shares the single in-memory connection, so returning a
    connection to the pool must not roll back another session's work.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        pool_reset_on_return=None,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    db_manager.bind(engine)

    yield engine

    await db_manager.close()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with db_manager.session() as session:
        yield session


@pytest.fixture
def booking_repo(test_session: AsyncSession) -> PostgresBookingRepository:
    return PostgresBookingRepository(test_session)


@pytest.fixture
def installment_repo(test_session: AsyncSession) -> PostgresInstallmentRepository:
    return PostgresInstallmentRepository(test_session)


# =============================================================================
# Mock Client Fixtures
# =============================================================================

@pytest.fixture
def mock_charge_processor() -> MockChargeProcessor:
    return MockChargeProcessor()


@pytest.fixture
def mock_notification_client() -> MockNotificationClient:
    return MockNotificationClient()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def installment_service(
    installment_repo: PostgresInstallmentRepository,
    booking_repo: PostgresBookingRepository,
    mock_notification_client: MockNotificationClient,
) -> InstallmentService:
    """InstallmentService bound to the shared test session."""
    return InstallmentService(
        installment_repository=installment_repo,
        booking_repository=booking_repo,
        notification_client=mock_notification_client,
    )


@pytest.fixture
def service_scope(test_engine, mock_notification_client: MockNotificationClient):
    """Unit-of-work factory the poller uses; one committed session per scope."""
    return build_service_scope(lambda: mock_notification_client)


@pytest.fixture
def poller(service_scope, mock_charge_processor: MockChargeProcessor) -> InstallmentPoller:
    return InstallmentPoller(
        service_scope=service_scope,
        charge_processor=mock_charge_processor,
        charge_timeout_seconds=0.5,
        interval_seconds=0.05,
        batch_size=100,
        concurrency=5,
        stale_grace_seconds=60,
    )


# =============================================================================
# Seed Helpers
# =============================================================================

@pytest.fixture
def seed_booking(service_scope):
    """
    Insert a committed booking with explicit installments.

    Returns the booking entity; installments are given as
    (due_date, amount_cents) pairs.
    """

    async def _seed(
        total_cents: int = 100000,
        installments: Optional[List[tuple]] = None,
        payment_method_ref: str = "pm_card_visa",
        amount_paid_cents: int = 0,
        frequency: PaymentFrequency = PaymentFrequency.BI_WEEKLY,
        cutoff_date: Optional[date] = None,
    ) -> Booking:
        today = utcnow().date()
        booking = Booking(
            customer_ref="cus_test",
            payment_method_ref=payment_method_ref,
            trip_id="trip_iceland",
            total_cents=total_cents,
            amount_paid_cents=amount_paid_cents,
            deposit_cents=amount_paid_cents,
            payment_frequency=frequency,
            cutoff_date=cutoff_date or today + timedelta(days=60),
        )
        async with db_manager.session() as session:
            await PostgresBookingRepository(session).save(booking)
            await PostgresInstallmentRepository(session).add_all([
                Installment(booking_id=booking.id, due_date=due, amount_cents=amount)
                for due, amount in (
                    installments if installments is not None else [(today, total_cents)]
                )
            ])
        return booking

    return _seed


@pytest.fixture
def load_installments():
    """Read a booking's installments in a fresh session."""

    async def _load(booking_id) -> List[Installment]:
        async with db_manager.session() as session:
            return await PostgresInstallmentRepository(session).get_by_booking_id(booking_id)

    return _load


@pytest.fixture
def load_booking():
    async def _load(booking_id) -> Booking:
        async with db_manager.session() as session:
            return await PostgresBookingRepository(session).get_by_id(booking_id)

    return _load


# =============================================================================
# App Client Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def client(
    test_engine,
    service_scope,
    poller: InstallmentPoller,
    mock_notification_client: MockNotificationClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with mocked dependencies.

    This client:
    - Uses the in-memory SQLite database through db_manager
    - Sends notifications to the mock client after each commit
    - Exposes a poller driven by the mock charge processor
    """
    app.state.poller = poller
    app.state.service_scope = service_scope

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.poller
    del app.state.service_scope


@pytest.fixture
def booking_request() -> dict:
    """Request body for a bi-weekly booking due in 100 days."""
    return {
        "customer_ref": "cus_P1a2b3c4",
        "payment_method_ref": "pm_card_visa",
        "trip_id": "trip_patagonia",
        "package": "standard",
        "total_cents": 100000,
        "deposit_cents": 0,
        "payment_frequency": "bi-weekly",
        "cutoff_date": (utcnow().date() + timedelta(days=100)).isoformat(),
    }
