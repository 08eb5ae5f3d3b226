"""Sales tax rate lookup with a jurisdiction fallback table."""

import logging
from decimal import Decimal, InvalidOperation

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Retry configuration for the tax API
MAX_RETRIES = 2
MIN_WAIT_SECONDS = 0.2
MAX_WAIT_SECONDS = 1

RATE_PLACES = Decimal("0.0001")

# Combined base rates by US state / Canadian province
STATE_TAX_RATES: dict[str, Decimal] = {
    "AL": Decimal("0.04"),
    "AK": Decimal("0"),
    "AZ": Decimal("0.056"),
    "AR": Decimal("0.065"),
    "CA": Decimal("0.0725"),
    "CO": Decimal("0.029"),
    "CT": Decimal("0.0635"),
    "DE": Decimal("0"),
    "FL": Decimal("0.06"),
    "GA": Decimal("0.04"),
    "HI": Decimal("0.04"),
    "ID": Decimal("0.06"),
    "IL": Decimal("0.0625"),
    "IN": Decimal("0.07"),
    "IA": Decimal("0.06"),
    "KS": Decimal("0.065"),
    "KY": Decimal("0.06"),
    "LA": Decimal("0.0445"),
    "ME": Decimal("0.055"),
    "MD": Decimal("0.06"),
    "MA": Decimal("0.0625"),
    "MI": Decimal("0.06"),
    "MN": Decimal("0.06875"),
    "MS": Decimal("0.07"),
    "MO": Decimal("0.04225"),
    "MT": Decimal("0"),
    "NE": Decimal("0.055"),
    "NV": Decimal("0.0685"),
    "NH": Decimal("0"),
    "NJ": Decimal("0.06625"),
    "NM": Decimal("0.05125"),
    "NY": Decimal("0.04"),
    "NC": Decimal("0.0475"),
    "ND": Decimal("0.05"),
    "OH": Decimal("0.0575"),
    "OK": Decimal("0.045"),
    "OR": Decimal("0"),
    "PA": Decimal("0.06"),
    "RI": Decimal("0.07"),
    "SC": Decimal("0.06"),
    "SD": Decimal("0.045"),
    "TN": Decimal("0.07"),
    "TX": Decimal("0.0625"),
    "UT": Decimal("0.061"),
    "VT": Decimal("0.06"),
    "VA": Decimal("0.053"),
    "WA": Decimal("0.065"),
    "WV": Decimal("0.06"),
    "WI": Decimal("0.05"),
    "WY": Decimal("0.04"),
    "DC": Decimal("0.06"),
    # Canada
    "AB": Decimal("0.05"),
    "BC": Decimal("0.12"),
    "MB": Decimal("0.12"),
    "NB": Decimal("0.15"),
    "NL": Decimal("0.15"),
    "NS": Decimal("0.15"),
    "NT": Decimal("0.05"),
    "NU": Decimal("0.05"),
    "ON": Decimal("0.13"),
    "PE": Decimal("0.15"),
    "QC": Decimal("0.14975"),
    "SK": Decimal("0.11"),
    "YT": Decimal("0.05"),
}


class TaxRateUnavailableError(Exception):
    """The sales tax API did not return a usable rate."""


class TaxService:
    """Resolves the sales tax rate for a destination."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize tax service.

        Args:
            http_client: Client for the tax API. A short-lived client is
                created per lookup when omitted.
        """
        self.settings = get_settings()
        self._http_client = http_client

    async def get_tax_rate(
        self,
        zip_code: str,
        state_province: str | None = None,
        country: str | None = None,
    ) -> Decimal:
        """Get the tax rate for a destination.

        US destinations (or destinations without a country) are looked up
        by postal code when an API key is configured. Everything else, and
        any lookup failure, uses the state/province table.

        Args:
            zip_code: ZIP or postal code.
            state_province: State or province code.
            country: ISO country code.

        Returns:
            Decimal: Rate as a fraction rounded to 4 places (0.0725 for 7.25%).
        """
        is_us = not country or country.strip().upper() in ("US", "USA")

        if is_us and self.settings.tax_api_key and zip_code:
            try:
                rate = await self._fetch_rate(zip_code.strip())
                return rate.quantize(RATE_PLACES)
            except (httpx.HTTPError, TaxRateUnavailableError) as e:
                logger.warning("Tax API lookup failed for %s, using fallback rate: %s", zip_code, str(e))

        return self.fallback_rate(state_province)

    def fallback_rate(self, state_province: str | None) -> Decimal:
        """Rate from the jurisdiction table, or the default rate."""
        code = (state_province or "").strip().upper()
        rate = STATE_TAX_RATES.get(code, self.settings.default_tax_rate)
        return Decimal(rate).quantize(RATE_PLACES)

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=0.2, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    async def _fetch_rate(self, zip_code: str) -> Decimal:
        """Query the sales tax API for a postal code."""
        if self._http_client is not None:
            response = await self._request(self._http_client, zip_code)
        else:
            async with httpx.AsyncClient(timeout=self.settings.tax_api_timeout_seconds) as client:
                response = await self._request(client, zip_code)

        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise TaxRateUnavailableError("Tax API returned malformed JSON") from e

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise TaxRateUnavailableError(f"No tax data for {zip_code}")

        total_rate = data[0].get("total_rate")
        if total_rate is None:
            raise TaxRateUnavailableError(f"Tax data for {zip_code} has no total_rate")

        try:
            percentage = Decimal(str(total_rate))
        except InvalidOperation as e:
            raise TaxRateUnavailableError(f"Tax data for {zip_code} has a non-numeric total_rate") from e
        if not percentage.is_finite() or percentage < 0:
            raise TaxRateUnavailableError(f"Tax data for {zip_code} has an invalid total_rate")

        # The API reports a percentage
        return percentage / 100

    async def _request(self, client: httpx.AsyncClient, zip_code: str) -> httpx.Response:
        return await client.get(
            self.settings.tax_api_url,
            params={"zip_code": zip_code},
            headers={"X-Api-Key": self.settings.tax_api_key},
            timeout=self.settings.tax_api_timeout_seconds,
        )
