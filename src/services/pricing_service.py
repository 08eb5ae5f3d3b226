"""Pricing engine: subtotal, tax, shipping and total for a cart."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from src.core.config import get_settings
from src.schemas.pricing import PricingAddress, PricingBreakdown, PricingItem, TaxResponse
from src.services.tax_service import TaxService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    """Round an amount half-up to cents."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class InvalidPricingInputError(ValueError):
    """Pricing input that cannot produce a breakdown."""


class PricingService:
    """Computes reproducible price breakdowns.

    All arithmetic is Decimal. A breakdown is a pure function of the items,
    the destination and the tax rate resolved for it.
    """

    def __init__(self, tax_service: TaxService | None = None) -> None:
        """Initialize pricing service.

        Args:
            tax_service: Tax rate resolver (created when omitted).
        """
        self.settings = get_settings()
        self.tax_service = tax_service or TaxService()

    @staticmethod
    def subtotal(items: Iterable[PricingItem]) -> Decimal:
        """Sum of price x quantity, rounded to cents."""
        return to_cents(sum((Decimal(item.price) * item.quantity for item in items), Decimal("0")))

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        """Flat fee below the free-shipping threshold, free at or above it."""
        if subtotal >= self.settings.free_shipping_threshold:
            return Decimal("0.00")
        return to_cents(self.settings.flat_shipping_fee)

    async def compute_pricing(
        self,
        items: list[PricingItem],
        shipping_address: PricingAddress,
    ) -> PricingBreakdown:
        """Compute the full breakdown for a cart.

        Args:
            items: Priced quantities.
            shipping_address: Destination used for tax.

        Returns:
            PricingBreakdown: subtotal, tax, shipping and total.

        Raises:
            InvalidPricingInputError: If the subtotal is not positive.
        """
        subtotal = self.subtotal(items)
        if subtotal <= 0:
            raise InvalidPricingInputError("Subtotal must be greater than zero")

        tax_rate = await self.tax_service.get_tax_rate(
            shipping_address.zip_code,
            shipping_address.state_province,
            shipping_address.country,
        )
        tax_amount = to_cents(subtotal * tax_rate)
        shipping_amount = self.shipping_for(subtotal)
        total = subtotal + tax_amount + shipping_amount

        logger.debug(
            "Priced %d items for %s: subtotal=%s tax=%s (%s) shipping=%s total=%s",
            len(items),
            shipping_address.zip_code,
            subtotal,
            tax_amount,
            tax_rate,
            shipping_amount,
            total,
        )
        return PricingBreakdown(
            subtotal=subtotal,
            tax_amount=tax_amount,
            tax_rate=tax_rate,
            shipping_amount=shipping_amount,
            total=total,
        )

    async def calculate_tax(
        self,
        subtotal: Decimal,
        zip_code: str,
        state_province: str | None = None,
        country: str | None = None,
    ) -> TaxResponse:
        """Compute tax only, without shipping.

        Raises:
            InvalidPricingInputError: If the subtotal is not positive.
        """
        subtotal = to_cents(Decimal(subtotal))
        if subtotal <= 0:
            raise InvalidPricingInputError("Subtotal must be greater than zero")

        tax_rate = await self.tax_service.get_tax_rate(zip_code, state_province, country)
        tax_amount = to_cents(subtotal * tax_rate)
        return TaxResponse(tax_amount=tax_amount, tax_rate=tax_rate, total=subtotal + tax_amount)
