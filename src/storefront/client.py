"""HTTP client the storefront uses to reach the marketplace API."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from src.core.config import get_settings
from src.schemas.address import ShippingAddress
from src.schemas.checkout import CheckoutCompleteResponse
from src.schemas.order import ReservationLine
from src.schemas.pricing import PricingBreakdown
from src.schemas.reservation import SlotCheckResponse
from src.storefront.session import StorefrontSession

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """A call to the marketplace API did not produce a usable answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize upstream error.

        Args:
            message: Human-readable error description.
            status_code: HTTP status returned by the API, if any.
        """
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UpstreamUnavailableError(UpstreamError):
    """Network failure, timeout or non-2xx response."""


class UpstreamProtocolError(UpstreamError):
    """The API answered 2xx with a body that does not parse."""


class MarketplaceApiClient:
    """Async client for the marketplace REST surface.

    Every call forwards the shopper's cookies so the API sees the same
    identity the storefront does. Calls are bounded by the configured
    upstream timeout.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API base URL (defaults to MARKETPLACE_API_URL).
            timeout: Per-request timeout in seconds (defaults to UPSTREAM_TIMEOUT_SECONDS).
            transport: Optional transport, used by tests.
        """
        settings = get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.marketplace_api_url,
            timeout=timeout if timeout is not None else settings.upstream_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        session: StorefrontSession,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            session: Shopper session whose cookies are forwarded.
            json: JSON body.
            params: Query parameters.

        Returns:
            Any: Decoded JSON body.

        Raises:
            UpstreamUnavailableError: On network errors, timeouts and non-2xx responses.
            UpstreamProtocolError: If a 2xx body is not valid JSON.
        """
        headers = {}
        cookie_header = session.cookie_header()
        if cookie_header:
            headers["Cookie"] = cookie_header

        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise UpstreamUnavailableError("The request timed out. Please try again.") from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, str(e))
            raise UpstreamUnavailableError("Unable to reach the marketplace service.") from e

        try:
            data = response.json()
        except ValueError as e:
            if response.is_success:
                logger.error("%s %s returned malformed JSON (status %d)", method, path, response.status_code)
                raise UpstreamProtocolError(
                    "The marketplace service returned an unreadable response.",
                    response.status_code,
                ) from e
            data = None

        if not response.is_success:
            message = None
            if isinstance(data, dict):
                detail = data.get("detail")
                message = data.get("message") or (detail if isinstance(detail, str) else None)
            logger.warning("%s %s returned %d: %s", method, path, response.status_code, message)
            raise UpstreamUnavailableError(
                message or f"The marketplace service responded with status {response.status_code}.",
                response.status_code,
            )

        return data

    async def get_orders_by_payment_intent(self, session: StorefrontSession, payment_intent_id: str) -> list[str]:
        """Get the ids of the orders created by a payment intent."""
        data = await self.request("GET", "/api/orders", session, params={"paymentIntentId": payment_intent_id})
        orders = data.get("data") if isinstance(data, dict) else None
        if not isinstance(orders, list):
            raise UpstreamProtocolError("Order lookup returned an unexpected payload.")
        return [str(order["id"]) for order in orders if isinstance(order, dict) and order.get("id")]

    async def complete_checkout_session(
        self,
        session: StorefrontSession,
        session_id: str,
        guest: bool = False,
    ) -> CheckoutCompleteResponse:
        """Ask the API to materialize the orders for a Checkout Session."""
        path = "/api/payments/guest-checkout-complete" if guest else "/api/payments/checkout-complete"
        data = await self.request("POST", path, session, json={"sessionId": session_id})
        return self._parse(CheckoutCompleteResponse, data)

    async def check_time_slot(
        self,
        session: StorefrontSession,
        product_id: str,
        reservation_date: str,
        reservation_time: str,
    ) -> SlotCheckResponse:
        """Ask whether a reservation slot is still free."""
        data = await self.request(
            "POST",
            "/api/reservations/check-time-slot",
            session,
            json={"productId": product_id, "date": reservation_date, "time": reservation_time},
        )
        return self._parse(SlotCheckResponse, data)

    async def calculate_pricing(
        self,
        session: StorefrontSession,
        items: list[ReservationLine],
        address: ShippingAddress,
    ) -> PricingBreakdown:
        """Get the authoritative price breakdown for cart lines."""
        payload = {
            "items": [{"price": float(item.price), "quantity": item.quantity} for item in items],
            "shippingAddress": {
                "zipCode": address.zip_code,
                "stateProvince": address.state_province or None,
                "country": address.country or "US",
            },
        }
        data = await self.request("POST", "/api/tax/calculate-pricing", session, json=payload)
        return self._parse(PricingBreakdown, data)

    @staticmethod
    def _parse(model: Any, data: Any) -> Any:
        # Accept both bare payloads and {"success", "data"} envelopes
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UpstreamProtocolError(f"Unexpected {model.__name__} payload from the marketplace service.") from e
