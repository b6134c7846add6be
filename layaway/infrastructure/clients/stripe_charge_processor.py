"""Stripe implementation of ChargeProcessor."""

import asyncio
from typing import Dict, Optional

import stripe
import structlog

from layaway.core.config import settings
from layaway.core.metrics import track_charge_latency
from layaway.domain.entities import ChargeOutcome
from layaway.domain.interfaces import ChargeProcessor

logger = structlog.get_logger(__name__)

AUTHENTICATION_REQUIRED_CODE = "authentication_required"


class StripeChargeProcessor(ChargeProcessor):
    """
    Charges stored cards off-session through Stripe PaymentIntents.

    The Stripe client is synchronous, so each call runs in a worker thread.
    Stripe errors are mapped to ChargeOutcome values and never raised.
    """

    def __init__(
        self,
        api_key: str | None = None,
        currency: str | None = None,
        max_network_retries: int | None = None,
    ):
        self._api_key = api_key or settings.stripe_secret_key
        self._currency = currency or settings.charge_currency
        self._max_network_retries = (
            max_network_retries
            if max_network_retries is not None
            else settings.stripe_max_network_retries
        )
        if not self._api_key:
            raise RuntimeError("Stripe secret key is not configured.")

        stripe.max_network_retries = self._max_network_retries

    async def charge(
        self,
        customer_ref: str,
        payment_method_ref: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ChargeOutcome:
        log = logger.bind(
            customer_ref=customer_ref,
            amount_cents=amount_cents,
            idempotency_key=idempotency_key,
        )

        try:
            with track_charge_latency():
                intent = await asyncio.to_thread(
                    self._create_payment_intent,
                    customer_ref,
                    payment_method_ref,
                    amount_cents,
                    idempotency_key,
                    metadata or {},
                )
        except stripe.CardError as e:
            intent_id = self._intent_id_from_error(e)
            if e.code == AUTHENTICATION_REQUIRED_CODE:
                log.warning("stripe_authentication_required", payment_intent=intent_id)
                return ChargeOutcome.authentication_required(
                    reason=e.user_message or "Customer authentication required",
                    transaction_ref=intent_id,
                )

            log.warning(
                "stripe_card_declined",
                code=e.code,
                decline_code=getattr(e, "decline_code", None),
                payment_intent=intent_id,
            )
            return ChargeOutcome.declined(
                reason=e.user_message or str(e),
                transaction_ref=intent_id,
            )
        except stripe.StripeError as e:
            log.error(
                "stripe_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ChargeOutcome.error(reason=f"Stripe error: {e.user_message or str(e)}")

        if intent.status == "succeeded":
            log.info("stripe_charge_succeeded", payment_intent=intent.id)
            return ChargeOutcome.success(transaction_ref=intent.id)

        if intent.status == "requires_action":
            log.warning("stripe_authentication_required", payment_intent=intent.id)
            return ChargeOutcome.authentication_required(
                reason="Customer authentication required",
                transaction_ref=intent.id,
            )

        log.warning("stripe_unexpected_status", status=intent.status, payment_intent=intent.id)
        return ChargeOutcome.declined(
            reason=f"Payment intent ended in status {intent.status}",
            transaction_ref=intent.id,
        )

    def _create_payment_intent(
        self,
        customer_ref: str,
        payment_method_ref: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: Dict[str, str],
    ):
        return stripe.PaymentIntent.create(
            api_key=self._api_key,
            idempotency_key=idempotency_key,
            amount=amount_cents,
            currency=self._currency,
            customer=customer_ref,
            payment_method=payment_method_ref,
            off_session=True,
            confirm=True,
            metadata=metadata,
        )

    def _intent_id_from_error(self, error: "stripe.StripeError") -> str | None:
        error_obj = getattr(error, "error", None)
        payment_intent = getattr(error_obj, "payment_intent", None)
        if isinstance(payment_intent, str):
            return payment_intent
        return getattr(payment_intent, "id", None)
