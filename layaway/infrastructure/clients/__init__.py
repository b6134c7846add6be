"""External API client implementations."""

from layaway.core.config import settings
from layaway.domain.interfaces import ChargeProcessor

from .notification_client import HttpNotificationClient
from .stripe_charge_processor import StripeChargeProcessor
from .stub_charge_processor import StubChargeProcessor


def build_charge_processor() -> ChargeProcessor:
    """Charge processor for the configured mode; stub when no key is set."""
    if settings.charge_processor_mode == "stripe" and settings.stripe_secret_key:
        return StripeChargeProcessor()
    return StubChargeProcessor()


__all__ = [
    "HttpNotificationClient",
    "StripeChargeProcessor",
    "StubChargeProcessor",
    "build_charge_processor",
]
