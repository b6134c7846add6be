"""HTTP implementation of NotificationClient."""

import asyncio
from typing import Any, Dict

import httpx
import structlog

from layaway.core.clock import utcnow
from layaway.core.config import settings
from layaway.core.metrics import (
    record_notification_failure,
    record_notification_retry,
    record_notification_success,
)
from layaway.domain.entities import Booking, Installment
from layaway.domain.interfaces import NotificationClient

logger = structlog.get_logger(__name__)


class HttpNotificationClient(NotificationClient):
    """
    HTTP client for the notification service.

    Posts payment events as JSON with retry logic and exponential backoff.
    Delivery failures are logged and counted, never raised.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        self._base_url = base_url or settings.notification_webhook_url
        self._timeout = timeout or settings.notification_webhook_timeout
        self._max_retries = max_retries or settings.notification_max_retries

    async def send_installment_paid(
        self,
        installment: Installment,
        booking: Booking,
    ) -> bool:
        payload = {
            "event": "installment_paid",
            **self._installment_fields(installment, booking),
            "transaction_ref": installment.transaction_ref,
            "amount_paid_cents": booking.amount_paid_cents,
            "remaining_cents": booking.remaining_cents,
        }
        return await self._send(payload, "installment_paid")

    async def send_installment_failed(
        self,
        installment: Installment,
        booking: Booking,
    ) -> bool:
        payload = {
            "event": "installment_failed",
            **self._installment_fields(installment, booking),
            "attempts": installment.attempts,
            "failure_code": installment.failure_code,
            "failure_reason": installment.failure_reason,
            "next_retry_at": (
                installment.next_retry_at.isoformat() + "Z"
                if installment.next_retry_at
                else None
            ),
            "requires_customer_action": installment.requires_customer_action,
            "retries_exhausted": installment.retries_exhausted,
            "operator_alert": installment.retries_exhausted,
        }
        return await self._send(payload, "installment_failed")

    async def send_booking_completed(self, booking: Booking) -> bool:
        payload = {
            "event": "booking_completed",
            "booking_id": str(booking.id),
            "customer_ref": booking.customer_ref,
            "trip_id": booking.trip_id,
            "total_cents": booking.total_cents,
            "completed_at": utcnow().isoformat() + "Z",
        }
        return await self._send(payload, "booking_completed")

    def _installment_fields(
        self,
        installment: Installment,
        booking: Booking,
    ) -> Dict[str, Any]:
        return {
            "installment_id": str(installment.id),
            "booking_id": str(booking.id),
            "customer_ref": booking.customer_ref,
            "trip_id": booking.trip_id,
            "amount_cents": installment.amount_cents,
            "due_date": installment.due_date.isoformat(),
        }

    async def _send(self, payload: Dict[str, Any], event_type: str) -> bool:
        """
        Post a notification with retry logic.

        Uses exponential backoff: 0.1s, 0.2s, 0.4s, ...
        """
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._base_url, json=payload)

                if response.status_code < 400:
                    logger.info(
                        "notification_sent",
                        event_type=event_type,
                        status_code=response.status_code,
                    )
                    record_notification_success()
                    return True

                logger.warning(
                    "notification_failed",
                    event_type=event_type,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    response=response.text[:200],
                )

            except httpx.TimeoutException:
                logger.warning(
                    "notification_timeout",
                    event_type=event_type,
                    attempt=attempt + 1,
                )
            except httpx.HTTPError as e:
                logger.error(
                    "notification_error",
                    event_type=event_type,
                    attempt=attempt + 1,
                    error=str(e),
                )

            if attempt < self._max_retries - 1:
                record_notification_retry()
                await asyncio.sleep(2**attempt * 0.1)

        logger.error(
            "notification_exhausted_retries",
            event_type=event_type,
            max_retries=self._max_retries,
        )
        record_notification_failure()
        return False
