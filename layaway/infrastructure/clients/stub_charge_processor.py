"""Stand-in charge processor for local development."""

from typing import Dict, Optional
from uuid import uuid4

import structlog

from layaway.domain.entities import ChargeOutcome
from layaway.domain.interfaces import ChargeProcessor

logger = structlog.get_logger(__name__)


class StubChargeProcessor(ChargeProcessor):
    """
    Approves every charge with a predictable test reference.

    Used when no Stripe key is configured so the booking flow runs end to
    end without reaching the payment network. Payment method references
    listed in decline_methods or auth_required_methods produce the
    matching failure instead.
    """

    def __init__(
        self,
        decline_methods: set[str] | None = None,
        auth_required_methods: set[str] | None = None,
    ):
        self._decline_methods = decline_methods or set()
        self._auth_required_methods = auth_required_methods or set()

    async def charge(
        self,
        customer_ref: str,
        payment_method_ref: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ChargeOutcome:
        intent_id = f"pi_test_{uuid4().hex}"

        if payment_method_ref in self._auth_required_methods:
            outcome = ChargeOutcome.authentication_required(
                reason="Customer authentication required",
                transaction_ref=intent_id,
            )
        elif payment_method_ref in self._decline_methods:
            outcome = ChargeOutcome.declined(
                reason="Your card was declined.",
                transaction_ref=intent_id,
            )
        else:
            outcome = ChargeOutcome.success(transaction_ref=intent_id)

        logger.info(
            "stub_charge",
            customer_ref=customer_ref,
            amount_cents=amount_cents,
            status=outcome.status.value,
        )
        return outcome
