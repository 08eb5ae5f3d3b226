"""Checkout completion: turns a paid Stripe Checkout Session into orders."""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

import stripe

from src.core.config import get_settings
from src.core.locks import get_checkout_session_locks
from src.core.stripe import CENTS, from_minor_units, get_stripe
from src.models.order import OrderCreate, OrderItem, ShippingAddressSnapshot
from src.schemas.common import utc_now
from src.schemas.order import OrderStatus
from src.schemas.payment import checkout_session_descriptor
from src.services.order_service import OrderService
from src.services.order_status_service import OrderStatusService

logger = logging.getLogger(__name__)

DEFAULT_STORE_NAME = "Marketplace Store"


class CheckoutFinalizationError(Exception):
    """Checkout session cannot be turned into orders.

    Carries the HTTP status the completion endpoint should answer with.
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        """Initialize finalization error.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code for the API response.
        """
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _first(mapping: Any, *keys: str) -> Any:
    """Return the first truthy value among keys (camelCase or snake_case)."""
    if not mapping:
        return None
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def _object_id(value: Any) -> str | None:
    """Stripe fields may be an id string or an expanded object."""
    if isinstance(value, str):
        return value
    if value:
        return value.get("id")
    return None


class CheckoutCompletionService:
    """Materializes orders for completed Stripe Checkout Sessions.

    Completion is idempotent per session id: orders are looked up by
    stripe_session_id first, and concurrent completions of the same
    session (webhook racing the redirect) are serialized by a lock.
    """

    def __init__(self) -> None:
        """Initialize checkout completion service with clients."""
        self.stripe = get_stripe()
        self.settings = get_settings()
        self.orders = OrderService()
        self.locks = get_checkout_session_locks()

    async def complete_checkout_session(
        self,
        session_id: str,
        user_id: UUID | None = None,
        guest: bool = False,
        trusted: bool = False,
    ) -> dict[str, Any]:
        """Create the orders for a paid Checkout Session, once.

        Args:
            session_id: Stripe Checkout Session ID.
            user_id: Authenticated caller (authenticated flow).
            guest: Caller is completing a guest checkout.
            trusted: Skip ownership checks (signed webhook deliveries).

        Returns:
            dict: Contains success, message, order_ids.

        Raises:
            CheckoutFinalizationError: If the session cannot be completed.
        """
        if not self.settings.stripe_secret_key:
            raise CheckoutFinalizationError("Stripe is not configured. Please contact support.", 500)

        async with self.locks.hold(session_id):
            existing = await self.orders.get_orders_by_checkout_session(session_id)
            if existing:
                logger.info("Checkout session %s already has %d orders", session_id, len(existing))
                return {
                    "success": True,
                    "message": "Order already processed.",
                    "order_ids": [order["id"] for order in existing],
                }

            session = self._retrieve_session(session_id)
            metadata = session.get("metadata") or {}
            owner_id = self._check_owner(session_id, metadata, user_id, guest, trusted)

            if session.get("payment_status") != "paid":
                raise CheckoutFinalizationError(
                    "Payment has not been completed for this session. "
                    "Please try again after payment is confirmed.",
                    400,
                )

            shipping_address = self.resolve_shipping_address(session)
            if not shipping_address:
                raise CheckoutFinalizationError(
                    "A valid shipping address could not be determined for this session.",
                    400,
                )

            groups = self.group_line_items_by_store(session_id)
            if not groups:
                raise CheckoutFinalizationError(
                    "No purchasable items were found for this session. Please contact support.",
                    400,
                )

            payment_intent_id = _object_id(session.get("payment_intent"))
            orders = await self.orders.create_orders(
                [
                    self._build_order(
                        session_id=session_id,
                        owner_id=owner_id,
                        group=group,
                        shipping_address=shipping_address,
                        payment_intent_id=payment_intent_id,
                        currency=session.get("currency") or "usd",
                        metadata=metadata,
                    )
                    for group in groups.values()
                ]
            )
            order_ids = [order["id"] for order in orders]

            self._mark_session_processed(session_id, metadata)
            logger.info("Checkout session %s completed with orders %s", session_id, order_ids)
            return {
                "success": True,
                "message": "Order has been recorded successfully.",
                "order_ids": order_ids,
            }

    def _retrieve_session(self, session_id: str) -> Any:
        try:
            session = self.stripe.checkout.Session.retrieve(session_id)
        except stripe.InvalidRequestError as e:
            logger.warning("Checkout session %s not found: %s", session_id, str(e))
            raise CheckoutFinalizationError("Checkout session not found.", 404) from e

        if not session:
            raise CheckoutFinalizationError("Checkout session not found.", 404)
        return session

    @staticmethod
    def _check_owner(
        session_id: str,
        metadata: Any,
        user_id: UUID | None,
        guest: bool,
        trusted: bool,
    ) -> str | None:
        """Verify the caller may finalize the session and return the order owner."""
        session_user = metadata.get("userId") or metadata.get("user_id")
        is_guest_session = metadata.get("isGuest") == "true"

        if trusted:
            return None if is_guest_session else session_user

        if guest:
            if not is_guest_session:
                logger.warning("Guest completion attempted for non-guest session %s", session_id)
                raise CheckoutFinalizationError("This checkout session is not a guest checkout.", 403)
            return None

        if not session_user or session_user != str(user_id):
            logger.warning("User %s attempted to complete session %s owned by %s", user_id, session_id, session_user)
            raise CheckoutFinalizationError("You do not have permission to finalize this order.", 403)
        return session_user

    @staticmethod
    def resolve_shipping_address(session: Any) -> ShippingAddressSnapshot | None:
        """Find a complete shipping address for a Checkout Session.

        Prefers the shipping_address JSON in the session metadata, then
        the address Stripe collected.

        Args:
            session: Stripe Checkout Session.

        Returns:
            ShippingAddressSnapshot | None: The address, or None if no
            complete address is available.
        """
        metadata = session.get("metadata") or {}
        raw = metadata.get("shipping_address")
        if raw:
            try:
                parsed = json.loads(raw)
            except (TypeError, ValueError) as e:
                logger.warning("Unable to parse shipping address metadata: %s", str(e))
                parsed = None

            if isinstance(parsed, dict):
                address = ShippingAddressSnapshot(
                    street_address=_first(parsed, "streetAddress", "street_address") or "",
                    apt_number=_first(parsed, "aptNumber", "apt_number"),
                    city=parsed.get("city") or "",
                    state_province=_first(parsed, "stateProvince", "state_province") or "",
                    zip_code=_first(parsed, "zipCode", "zip_code") or "",
                    country=parsed.get("country") or "",
                )
                if _is_complete(address):
                    return address

        shipping_details = session.get("shipping_details") or {}
        collected = shipping_details.get("address")
        if not collected:
            customer_details = session.get("customer_details") or {}
            collected = customer_details.get("address")

        if collected:
            address = ShippingAddressSnapshot(
                street_address=collected.get("line1") or "",
                apt_number=collected.get("line2") or None,
                city=collected.get("city") or "",
                state_province=collected.get("state") or "",
                zip_code=collected.get("postal_code") or "",
                country=collected.get("country") or "",
            )
            if _is_complete(address):
                return address

        return None

    def group_line_items_by_store(self, session_id: str) -> dict[str, dict[str, Any]]:
        """Fetch the session's line items and group them by store.

        Items without a store or with a non-positive price or quantity
        are skipped.

        Args:
            session_id: Stripe Checkout Session ID.

        Returns:
            dict: store_id -> {"store_id", "store_name", "items"}.
        """
        line_items = self.stripe.checkout.Session.list_line_items(
            session_id,
            limit=100,
            expand=["data.price.product"],
        )

        groups: dict[str, dict[str, Any]] = {}
        for line_item in line_items.get("data") or []:
            quantity = line_item.get("quantity") or 0
            if quantity <= 0:
                continue

            price = line_item.get("price") or {}
            product = price.get("product")
            if isinstance(product, str):
                product = None
            metadata = (product or {}).get("metadata") or {}
            price_metadata = price.get("metadata") or {}

            store_id = _first(metadata, "storeId", "store_id") or price_metadata.get("storeId")
            unit_price = from_minor_units(price.get("unit_amount"))
            if not store_id or unit_price <= 0:
                continue

            images = (product or {}).get("images") or []
            item = OrderItem(
                product_id=_first(metadata, "productId", "product_id") or line_item.get("id"),
                product_name=line_item.get("description")
                or _first(metadata, "productName", "product_name")
                or "Product",
                product_image=images[0] if images else None,
                quantity=quantity,
                price=float(unit_price),
                subtotal=float(unit_price * quantity),
                is_reservation=False,
            )

            reservation_date = _first(metadata, "reservationDate", "reservation_date")
            reservation_time = _first(metadata, "reservationTime", "reservation_time")
            if _first(metadata, "isReservation", "is_reservation") == "true" and reservation_date and reservation_time:
                item["is_reservation"] = True
                item["reservation_date"] = reservation_date
                item["reservation_time"] = reservation_time[:5]
                item["reservation_notes"] = _first(metadata, "reservationNotes", "reservation_notes")

            group = groups.setdefault(
                store_id,
                {
                    "store_id": store_id,
                    "store_name": _first(metadata, "storeName", "store_name") or DEFAULT_STORE_NAME,
                    "items": [],
                },
            )
            group["items"].append(item)

        return groups

    @staticmethod
    def _build_order(
        session_id: str,
        owner_id: str | None,
        group: dict[str, Any],
        shipping_address: ShippingAddressSnapshot,
        payment_intent_id: str | None,
        currency: str,
        metadata: Any,
    ) -> OrderCreate:
        total = sum((Decimal(str(item["subtotal"])) for item in group["items"]), Decimal("0"))
        return OrderCreate(
            user_id=owner_id,
            store_id=group["store_id"],
            store_name=group["store_name"],
            items=group["items"],
            total_amount=float(total.quantize(CENTS, rounding=ROUND_HALF_UP)),
            currency=currency,
            shipping_address=shipping_address,
            payment_method=checkout_session_descriptor(session_id),
            status=OrderStatus.PENDING.value,
            order_date=utc_now().isoformat(),
            stripe_session_id=session_id,
            payment_intent_id=payment_intent_id,
            guest_email=metadata.get("guestEmail"),
            guest_full_name=metadata.get("guestFullName"),
            guest_phone_number=metadata.get("guestPhoneNumber"),
        )

    def _mark_session_processed(self, session_id: str, metadata: Any) -> None:
        try:
            self.stripe.checkout.Session.modify(
                session_id,
                metadata={**dict(metadata), "orders_created": "true"},
            )
        except stripe.StripeError as e:
            logger.warning("Unable to update checkout session %s metadata: %s", session_id, str(e))

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and return event.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event.

        Raises:
            ValueError: If signature is invalid or Stripe not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise ValueError("Stripe webhook secret is not configured. Please set STRIPE_WEBHOOK_SECRET environment variable.")

        try:
            return self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e

    async def handle_checkout_completed(self, event: dict[str, Any]) -> dict[str, Any] | None:
        """Process checkout.session.completed webhook event.

        Args:
            event: Stripe webhook event data.

        Returns:
            dict | None: Completion result, or None if the session could
            not be completed yet.
        """
        session = event["data"]["object"]
        try:
            return await self.complete_checkout_session(session["id"], trusted=True)
        except CheckoutFinalizationError as e:
            logger.warning("Webhook could not complete session %s: %s", session.get("id"), e.message)
            return None

    async def handle_payment_intent_authorized(self, event: dict[str, Any]) -> list[str]:
        """Process payment_intent.succeeded / amount_capturable_updated.

        Moves orders still awaiting payment to pending.

        Returns:
            list[str]: IDs of orders that moved.
        """
        return await self._advance_pending_payment(event, OrderStatus.PENDING)

    async def handle_payment_intent_failed(self, event: dict[str, Any]) -> list[str]:
        """Process payment_intent.payment_failed / canceled.

        Cancels orders still awaiting payment.

        Returns:
            list[str]: IDs of orders that were cancelled.
        """
        return await self._advance_pending_payment(event, OrderStatus.CANCELLED)

    async def _advance_pending_payment(self, event: dict[str, Any], target: OrderStatus) -> list[str]:
        payment_intent_id = event["data"]["object"].get("id")
        if not payment_intent_id:
            logger.warning("Webhook %s missing payment intent id", event.get("type"))
            return []

        orders = await self.orders.get_pending_payment_orders(payment_intent_id)
        status_service = OrderStatusService()
        moved: list[str] = []
        for order in orders:
            result = await status_service.apply_status(order["id"], target)
            if result.success:
                moved.append(order["id"])
            else:
                logger.warning(
                    "Could not move order %s to %s for %s: %s",
                    order["id"],
                    target.value,
                    payment_intent_id,
                    result.message,
                )
        return moved


def _is_complete(address: ShippingAddressSnapshot) -> bool:
    return all(
        address.get(key)
        for key in ("street_address", "city", "state_province", "zip_code", "country")
    )
