"""Dependency injection for FastAPI."""

from contextlib import asynccontextmanager
from typing import Annotated, AsyncGenerator, Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from layaway.infrastructure.database import db_manager, get_db_session
from layaway.infrastructure.repositories import (
    PostgresBookingRepository,
    PostgresInstallmentRepository,
)
from layaway.infrastructure.clients import HttpNotificationClient
from layaway.application.services import (
    BookingService,
    InstallmentPoller,
    InstallmentService,
)
from layaway.application.services.poller import ServiceScope
from layaway.domain.interfaces import NotificationClient


# Repository dependencies
async def get_booking_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> PostgresBookingRepository:
    """Get a BookingRepository instance."""
    return PostgresBookingRepository(session)


async def get_installment_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> PostgresInstallmentRepository:
    """Get an InstallmentRepository instance."""
    return PostgresInstallmentRepository(session)


# External client dependencies
def get_notification_client() -> NotificationClient:
    """Get a NotificationClient instance."""
    return HttpNotificationClient()


# Service dependencies
async def get_installment_service(
    installment_repo: Annotated[
        PostgresInstallmentRepository, Depends(get_installment_repository)
    ],
    booking_repo: Annotated[PostgresBookingRepository, Depends(get_booking_repository)],
) -> InstallmentService:
    """
    Get an InstallmentService for read and scheduling routes.

    It carries no notifier. Routes that record outcomes go through a
    service scope so events are sent after commit.
    """
    return InstallmentService(
        installment_repository=installment_repo,
        booking_repository=booking_repo,
    )


async def get_booking_service(
    booking_repo: Annotated[PostgresBookingRepository, Depends(get_booking_repository)],
    installment_service: Annotated[InstallmentService, Depends(get_installment_service)],
) -> BookingService:
    """Get a BookingService instance."""
    return BookingService(
        booking_repository=booking_repo,
        installment_service=installment_service,
    )


def get_poller(request: Request) -> InstallmentPoller:
    """The poller created at startup."""
    poller = getattr(request.app.state, "poller", None)
    if poller is None:
        raise HTTPException(status_code=503, detail="Poller not initialized")
    return poller


# Poller scope: one session and one service per unit of work
def build_service_scope(
    notification_client_factory: Callable[[], NotificationClient] = get_notification_client,
) -> ServiceScope:
    """
    Build a unit-of-work factory.

    Each scope commits its own session on exit and only then sends the
    notifications its service queued. A scope that raises rolls back and
    sends nothing.
    """

    @asynccontextmanager
    async def scope() -> AsyncGenerator[InstallmentService, None]:
        async with db_manager.session() as session:
            service = InstallmentService(
                installment_repository=PostgresInstallmentRepository(session),
                booking_repository=PostgresBookingRepository(session),
                notification_client=notification_client_factory(),
            )
            yield service
        await service.send_notifications()

    return scope


installment_service_scope = build_service_scope()


def get_service_scope(request: Request) -> ServiceScope:
    """Scope factory for routes that must commit before returning."""
    return getattr(request.app.state, "service_scope", installment_service_scope)
