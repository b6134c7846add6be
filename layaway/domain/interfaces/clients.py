"""External client interfaces."""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from layaway.domain.entities import Booking, ChargeOutcome, Installment


class ChargeProcessor(ABC):
    """
    Abstract off-session charge processor.

    Charges a stored payment method without the cardholder present.
    """

    @abstractmethod
    async def charge(
        self,
        customer_ref: str,
        payment_method_ref: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ChargeOutcome:
        """
        Charge a stored payment method.

        Args:
            customer_ref: Processor customer reference
            payment_method_ref: Stored payment method reference
            amount_cents: Amount to charge in cents
            idempotency_key: Key identifying this attempt at the processor
            metadata: Extra key/value pairs stored with the charge

        Returns:
            ChargeOutcome describing success, decline, authentication
            challenge or error

        Note:
            Implementations map their library's errors to ChargeOutcome
            values instead of raising.
        """
        ...


class NotificationClient(ABC):
    """
    Abstract client for payment notifications.

    Delivers customer and operator notices about installment outcomes.
    """

    @abstractmethod
    async def send_installment_paid(
        self,
        installment: Installment,
        booking: Booking,
    ) -> bool:
        """
        Notify that an installment was collected.

        Returns:
            True if the notification was delivered
        """
        ...

    @abstractmethod
    async def send_installment_failed(
        self,
        installment: Installment,
        booking: Booking,
    ) -> bool:
        """
        Notify that a charge attempt failed.

        Exhausted installments are flagged for operator follow-up.

        Returns:
            True if the notification was delivered
        """
        ...

    @abstractmethod
    async def send_booking_completed(self, booking: Booking) -> bool:
        """
        Notify that a booking is fully paid.

        Returns:
            True if the notification was delivered
        """
        ...
