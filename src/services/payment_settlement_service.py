"""Payment capture and refund side effects of order status changes."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from src.core.stripe import CENTS, get_stripe, to_minor_units
from src.schemas.payment import ProviderTransaction, parse_payment_method

logger = logging.getLogger(__name__)

# Remaining balances at or below this are not worth refunding
REFUND_EPSILON = Decimal("0.01")


class PaymentSettlementService:
    """Captures or refunds Stripe payments after an order changes status.

    Settlement never raises: a failed capture or refund is logged and the
    status change that triggered it stands.
    """

    def __init__(self) -> None:
        """Initialize settlement service with the Stripe client."""
        self.stripe = get_stripe()

    def resolve_payment_intent_id(self, order: dict[str, Any]) -> str | None:
        """Find the PaymentIntent that paid for an order.

        Args:
            order: The order row.

        Returns:
            str | None: PaymentIntent ID, or None for local payments.
        """
        if order.get("payment_intent_id"):
            return order["payment_intent_id"]

        payment = parse_payment_method(order.get("payment_method"))
        if not isinstance(payment, ProviderTransaction):
            return None

        if payment.flow == "payment_intent":
            return payment.reference

        session = self.stripe.checkout.Session.retrieve(payment.reference)
        payment_intent = session.get("payment_intent")
        if isinstance(payment_intent, dict):
            return payment_intent.get("id")
        return payment_intent

    async def settle(self, order: dict[str, Any], new_status: str) -> dict[str, Any] | None:
        """Run the payment side effect for a status change.

        Args:
            order: The order row after the status change.
            new_status: The status just applied.

        Returns:
            dict | None: Fields the caller should persist on the order
            (for example an updated total_refunded), or None.
        """
        if new_status not in ("delivered", "cancelled", "returned"):
            return None

        try:
            payment_intent_id = self.resolve_payment_intent_id(order)
            if not payment_intent_id:
                logger.debug("Order %s has no provider payment, skipping settlement", order.get("id"))
                return None

            if new_status == "delivered":
                self.capture_if_authorized(order["id"], payment_intent_id)
                return None

            return self.refund_remaining(order, payment_intent_id)

        except stripe.StripeError as e:
            logger.error(
                "Stripe error settling order %s after %s: %s",
                order.get("id"),
                new_status,
                str(e),
            )
        except Exception:
            logger.exception("Unexpected error settling order %s after %s", order.get("id"), new_status)
        return None

    def capture_if_authorized(self, order_id: str, payment_intent_id: str) -> bool:
        """Capture a PaymentIntent that is waiting for capture.

        Returns:
            bool: True if a capture was made.
        """
        intent = self.stripe.PaymentIntent.retrieve(payment_intent_id)
        if intent.get("status") != "requires_capture":
            logger.info(
                "PaymentIntent %s for order %s is %s, nothing to capture",
                payment_intent_id,
                order_id,
                intent.get("status"),
            )
            return False

        self.stripe.PaymentIntent.capture(payment_intent_id)
        logger.info("Captured PaymentIntent %s for delivered order %s", payment_intent_id, order_id)
        return True

    def refund_remaining(self, order: dict[str, Any], payment_intent_id: str) -> dict[str, Any] | None:
        """Refund whatever has not been refunded yet.

        Args:
            order: The order row.
            payment_intent_id: PaymentIntent that paid for the order.

        Returns:
            dict | None: {"total_refunded": ...} to persist, or None if no
            refund was made.
        """
        total = Decimal(str(order.get("total_amount") or 0))
        refunded = Decimal(str(order.get("total_refunded") or 0))
        remaining = (total - refunded).quantize(CENTS, rounding=ROUND_HALF_UP)

        if remaining <= REFUND_EPSILON:
            logger.info("Order %s already fully refunded", order.get("id"))
            return None

        intent = self.stripe.PaymentIntent.retrieve(payment_intent_id)
        if intent.get("status") != "succeeded":
            logger.info(
                "PaymentIntent %s for order %s is %s, nothing to refund",
                payment_intent_id,
                order.get("id"),
                intent.get("status"),
            )
            return None

        amount_cents = to_minor_units(remaining)
        refund = self.stripe.Refund.create(
            payment_intent=payment_intent_id,
            amount=amount_cents,
            reason="requested_by_customer",
            metadata={
                "order_id": str(order.get("id")),
                "order_status": str(order.get("status")),
            },
        )

        new_refunded = min(total, refunded + remaining)
        logger.info(
            "Refunded %s on order %s (refund %s)",
            remaining,
            order.get("id"),
            refund.get("id"),
        )
        return {"total_refunded": float(new_refunded)}
