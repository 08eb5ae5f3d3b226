"""Unit tests for PricingService and TaxService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.schemas.pricing import PricingAddress, PricingItem
from src.services.pricing_service import InvalidPricingInputError, PricingService, to_cents
from src.services.tax_service import TaxService


def _tax_service(rate: str) -> MagicMock:
    service = MagicMock(spec=TaxService)
    service.get_tax_rate = AsyncMock(return_value=Decimal(rate))
    return service


class TestComputePricing:
    """Tests for compute_pricing method."""

    @pytest.mark.asyncio
    async def test_below_free_shipping_threshold(self) -> None:
        """Test a $42.00 cart shipped to New York."""
        service = PricingService(tax_service=TaxService())
        items = [PricingItem(price=Decimal("21.00"), quantity=2)]

        breakdown = await service.compute_pricing(items, PricingAddress(zip_code="10001", state_province="NY"))

        assert breakdown.subtotal == Decimal("42.00")
        assert breakdown.tax_rate == Decimal("0.0400")
        assert breakdown.tax_amount == Decimal("1.68")
        assert breakdown.shipping_amount == Decimal("5.99")
        assert breakdown.total == Decimal("49.67")

    @pytest.mark.asyncio
    async def test_free_shipping_above_threshold(self) -> None:
        """Test that shipping is free for a $61.50 cart."""
        service = PricingService(tax_service=_tax_service("0.0725"))
        items = [PricingItem(price=Decimal("20.50"), quantity=3)]

        breakdown = await service.compute_pricing(items, PricingAddress(zip_code="94103", state_province="CA"))

        assert breakdown.subtotal == Decimal("61.50")
        assert breakdown.shipping_amount == Decimal("0.00")
        assert breakdown.tax_amount == Decimal("4.46")
        assert breakdown.total == Decimal("65.96")

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self) -> None:
        """Test that a subtotal of exactly $50.00 ships free."""
        service = PricingService(tax_service=_tax_service("0"))

        breakdown = await service.compute_pricing(
            [PricingItem(price=Decimal("50.00"), quantity=1)],
            PricingAddress(zip_code="97201", state_province="OR"),
        )

        assert breakdown.shipping_amount == Decimal("0.00")
        assert breakdown.total == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_total_is_sum_of_parts(self) -> None:
        """Test that total always equals subtotal + tax + shipping."""
        service = PricingService(tax_service=_tax_service("0.06875"))

        breakdown = await service.compute_pricing(
            [PricingItem(price=Decimal("3.33"), quantity=7)],
            PricingAddress(zip_code="55401", state_province="MN"),
        )

        assert breakdown.total == breakdown.subtotal + breakdown.tax_amount + breakdown.shipping_amount

    @pytest.mark.asyncio
    async def test_rejects_zero_subtotal(self) -> None:
        """Test that free carts cannot be priced."""
        service = PricingService(tax_service=_tax_service("0.04"))

        with pytest.raises(InvalidPricingInputError):
            await service.compute_pricing(
                [PricingItem(price=Decimal("0"), quantity=1)],
                PricingAddress(zip_code="10001"),
            )

    def test_to_cents_rounds_half_up(self) -> None:
        """Test half-up rounding to cents."""
        assert to_cents(Decimal("1.005")) == Decimal("1.01")
        assert to_cents(Decimal("1.004")) == Decimal("1.00")


class TestCalculateTax:
    """Tests for calculate_tax method."""

    @pytest.mark.asyncio
    async def test_tax_only(self) -> None:
        """Test that tax quotes exclude shipping."""
        service = PricingService(tax_service=_tax_service("0.0625"))

        result = await service.calculate_tax(Decimal("42.00"), "60601", "IL", "US")

        assert result.tax_amount == Decimal("2.63")
        assert result.total == Decimal("44.63")


class TestTaxService:
    """Tests for TaxService."""

    @pytest.mark.asyncio
    async def test_fallback_without_api_key(self) -> None:
        """Test that the state table is used when no API key is configured."""
        service = TaxService()

        assert await service.get_tax_rate("94103", "ca", "US") == Decimal("0.0725")

    @pytest.mark.asyncio
    async def test_unknown_state_uses_default_rate(self) -> None:
        """Test that unknown jurisdictions use DEFAULT_TAX_RATE."""
        service = TaxService()

        assert await service.get_tax_rate("00000", "ZZ", "US") == Decimal("0.0800")

    @pytest.mark.asyncio
    async def test_api_rate_is_percentage(self) -> None:
        """Test that API percentages are converted to fractions."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["zip_code"] == "10001"
            assert request.headers["X-Api-Key"] == "test-tax-key"
            return httpx.Response(200, json=[{"zip_code": "10001", "total_rate": "8.875"}])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            service = TaxService(http_client=http_client)
            service.settings = service.settings.model_copy(update={"tax_api_key": "test-tax-key"})

            assert await service.get_tax_rate("10001", "NY", "US") == Decimal("0.0888")

    @pytest.mark.asyncio
    async def test_api_failure_falls_back(self) -> None:
        """Test that API errors fall back to the state table."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "down"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            service = TaxService(http_client=http_client)
            service.settings = service.settings.model_copy(update={"tax_api_key": "test-tax-key"})

            assert await service.get_tax_rate("10001", "NY", "US") == Decimal("0.0400")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            ["not-a-record"],
            [{"zip_code": "10001", "total_rate": "n/a"}],
            [{"zip_code": "10001", "total_rate": "NaN"}],
        ],
    )
    async def test_malformed_rate_falls_back(self, body: list) -> None:
        """Test that unusable API records fall back to the state table."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            service = TaxService(http_client=http_client)
            service.settings = service.settings.model_copy(update={"tax_api_key": "test-tax-key"})

            assert await service.get_tax_rate("10001", "NY", "US") == Decimal("0.0400")

    @pytest.mark.asyncio
    async def test_non_us_skips_api(self) -> None:
        """Test that Canadian destinations use the province table."""
        http_client = MagicMock()
        service = TaxService(http_client=http_client)
        service.settings = service.settings.model_copy(update={"tax_api_key": "test-tax-key"})

        assert await service.get_tax_rate("M5V 2T6", "ON", "CA") == Decimal("0.1300")
        http_client.get.assert_not_called()
