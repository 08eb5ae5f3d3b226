"""Checkout completion resolver: payment signal in, order ids out."""

import logging

from src.schemas.checkout import CheckoutCompletionResult
from src.schemas.common import FailureCode
from src.storefront.client import MarketplaceApiClient, UpstreamProtocolError, UpstreamUnavailableError
from src.storefront.session import StorefrontSession

logger = logging.getLogger(__name__)

AUTHENTICATION_REQUIRED_MESSAGE = "Authentication required to complete checkout. Please log in."
MISSING_IDENTIFIER_MESSAGE = "Missing checkout identifier. Please contact support."
SUCCESS_MESSAGE = "Order completed successfully."


def parse_order_ids(explicit_order_ids: str | None) -> list[str]:
    """Split a comma-separated id list, dropping blank entries."""
    if not explicit_order_ids:
        return []
    return [order_id.strip() for order_id in explicit_order_ids.split(",") if order_id.strip()]


class CheckoutCompletionResolver:
    """Turns whichever completion signal arrived into the set of orders.

    Signals are tried in a fixed order: explicit order ids, then the
    payment intent, then the Checkout Session. Only the last one can create
    orders, and the API makes that call idempotent per session.
    """

    def __init__(self, client: MarketplaceApiClient) -> None:
        self.client = client

    async def resolve(
        self,
        session: StorefrontSession,
        session_id: str | None = None,
        payment_intent_id: str | None = None,
        explicit_order_ids: str | None = None,
        guest: bool = False,
    ) -> CheckoutCompletionResult:
        """Resolve a completed payment into its orders.

        Args:
            session: Shopper session (cookies are forwarded upstream).
            session_id: Stripe Checkout Session ID.
            payment_intent_id: Stripe PaymentIntent ID.
            explicit_order_ids: Comma-separated order ids from the redirect URL.
            guest: The shopper checked out as a guest.

        Returns:
            CheckoutCompletionResult: Resolved order ids or a failure code.

        Raises:
            UpstreamProtocolError: If the API answered with an unreadable body.
        """
        if not guest and not session.has_auth:
            return CheckoutCompletionResult.failed(
                FailureCode.AUTHENTICATION_REQUIRED, AUTHENTICATION_REQUIRED_MESSAGE
            )

        order_ids = parse_order_ids(explicit_order_ids)
        if order_ids:
            return CheckoutCompletionResult.resolved(order_ids)

        try:
            if payment_intent_id and payment_intent_id.strip():
                order_ids = await self.client.get_orders_by_payment_intent(session, payment_intent_id.strip())
                logger.info("Resolved payment intent %s to orders %s", payment_intent_id, order_ids)
                return CheckoutCompletionResult.resolved(order_ids)

            if session_id and session_id.strip():
                response = await self.client.complete_checkout_session(session, session_id.strip(), guest=guest)
                if not response.success:
                    return CheckoutCompletionResult.failed(
                        FailureCode.UPSTREAM_UNAVAILABLE,
                        response.message or "Unable to complete checkout.",
                    )
                logger.info("Resolved checkout session %s to orders %s", session_id, response.order_ids)
                return CheckoutCompletionResult.resolved(
                    response.order_ids or [],
                    response.message or SUCCESS_MESSAGE,
                )

        except UpstreamProtocolError:
            raise
        except UpstreamUnavailableError as e:
            logger.warning("Checkout completion unavailable: %s", e.message)
            return CheckoutCompletionResult.failed(FailureCode.UPSTREAM_UNAVAILABLE, e.message)

        return CheckoutCompletionResult.failed(FailureCode.MISSING_CHECKOUT_IDENTIFIER, MISSING_IDENTIFIER_MESSAGE)
