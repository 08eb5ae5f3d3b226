"""Stripe client configuration and amount conversion."""

import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def configure_stripe() -> None:
    """Configure Stripe SDK with API key from settings.

    This should be called once at application startup.
    If Stripe keys are not configured, Stripe operations will fail with clear errors.
    """
    settings = get_settings()
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
        stripe.max_network_retries = settings.stripe_max_network_retries
        stripe.set_app_info(settings.app_name, version="0.1.0")
        logger.info("Stripe configured (test mode: %s)", settings.is_stripe_test_mode)
    else:
        logger.warning("Stripe secret key not configured. Payment features will not work.")


def get_stripe() -> stripe:
    """Get the configured Stripe module.

    Stripe SDK uses module-level configuration, so this returns the stripe
    module itself. Tests patch this function per service module.
    """
    return stripe


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to Stripe's integer minor units (cents).

    Half-cents round away from zero.
    """
    return int((Decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(value: int | None) -> Decimal:
    """Convert Stripe minor units to a currency amount."""
    return (Decimal(value or 0) / 100).quantize(CENTS)
