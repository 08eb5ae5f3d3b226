"""Storefront routes: cart management and the checkout return page."""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from src.api.deps import Cart, MarketplaceClient, ShopperSession
from src.api.middleware.error_handler import BadGatewayError, NotFoundError
from src.schemas.address import ShippingAddress
from src.schemas.cart import (
    CartItemCreate,
    CartItemQuantityUpdate,
    CartView,
    ReservationCheckResult,
)
from src.schemas.checkout import CheckoutSuccessView
from src.storefront.client import MarketplaceApiClient, UpstreamProtocolError
from src.storefront.completion_resolver import CheckoutCompletionResolver
from src.storefront.conflict_checker import ReservationConflictChecker
from src.storefront.pricing_coordinator import PricingCoordinator
from src.storefront.session import CartStore, StorefrontSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storefront", tags=["storefront"])


async def _after_cart_change(cart: CartStore, session: StorefrontSession, client: MarketplaceApiClient) -> CartView:
    """Re-check reservations, then reprice, then render the cart."""
    await ReservationConflictChecker(client).check(cart, session)
    await PricingCoordinator(client).refresh(cart, session)
    return cart.view()


@router.get(
    "/checkout/success",
    response_model=CheckoutSuccessView,
    summary="Checkout return page",
    description=(
        "Resolves the orders for a completed payment from whichever identifier the payment "
        "page returned with, and clears the cart once they are known."
    ),
)
async def checkout_success(
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
    session_id: Annotated[str | None, Query()] = None,
    payment_intent: Annotated[str | None, Query()] = None,
    order_ids: Annotated[str | None, Query(alias="orderIds")] = None,
    guest: bool = False,
) -> CheckoutSuccessView:
    """Resolve a completed checkout.

    Args:
        cart: The shopper's cart.
        session: The shopper session.
        client: Marketplace API client.
        session_id: Stripe Checkout Session ID.
        payment_intent: Stripe PaymentIntent ID.
        order_ids: Comma-separated order ids.
        guest: The shopper checked out as a guest.

    Returns:
        CheckoutSuccessView: Outcome and what to show.

    Raises:
        BadGatewayError: 502 if the marketplace API answered with an unreadable body.
    """
    resolver = CheckoutCompletionResolver(client)
    try:
        result = await resolver.resolve(
            session,
            session_id=session_id,
            payment_intent_id=payment_intent,
            explicit_order_ids=order_ids,
            guest=guest,
        )
    except UpstreamProtocolError as e:
        logger.error("Unreadable response while completing checkout: %s", e.message)
        raise BadGatewayError(
            "We couldn't confirm your order right now. "
            "Please refresh this page or return to your orders to verify the status."
        ) from e

    if result.success:
        cart.clear()
    else:
        logger.warning("Checkout completion failed: %s (%s)", result.message, result.error)

    return CheckoutSuccessView.from_result(result, clear_cart=result.success)


@router.get(
    "/cart",
    response_model=CartView,
    summary="View cart",
)
async def get_cart(cart: Cart) -> CartView:
    """Render the shopper's cart as it stands."""
    return cart.view()


@router.post(
    "/cart/items",
    response_model=CartView,
    summary="Add to cart",
    description="Adds a line, re-checks reservation slots and reprices the cart.",
)
async def add_cart_item(
    data: CartItemCreate,
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
) -> CartView:
    """Add a line to the cart."""
    cart.add_item(data)
    return await _after_cart_change(cart, session, client)


@router.patch(
    "/cart/items/{item_id}",
    response_model=CartView,
    summary="Change quantity",
)
async def update_cart_item(
    item_id: str,
    data: CartItemQuantityUpdate,
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
) -> CartView:
    """Change a line's quantity.

    Raises:
        NotFoundError: 404 if the line is not in the cart.
    """
    if cart.update_quantity(item_id, data.quantity) is None:
        raise NotFoundError("Cart item not found")
    return await _after_cart_change(cart, session, client)


@router.delete(
    "/cart/items/{item_id}",
    response_model=CartView,
    summary="Remove from cart",
)
async def remove_cart_item(
    item_id: str,
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
) -> CartView:
    """Remove a line from the cart.

    Raises:
        NotFoundError: 404 if the line is not in the cart.
    """
    if not cart.remove_item(item_id):
        raise NotFoundError("Cart item not found")
    return await _after_cart_change(cart, session, client)


@router.put(
    "/cart/shipping-address",
    response_model=CartView,
    summary="Select shipping address",
    description="Selects the destination and always reprices, even if the address is unchanged.",
)
async def select_shipping_address(
    address: ShippingAddress,
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
) -> CartView:
    """Select the shipping address used for tax and shipping."""
    await ReservationConflictChecker(client).check(cart, session)
    await PricingCoordinator(client).select_address(cart, session, address)
    return cart.view()


@router.post(
    "/cart/reservations/check",
    response_model=ReservationCheckResult,
    summary="Re-check reservations",
    description="Re-checks every reservation slot in the cart and evicts the ones that were taken.",
)
async def check_reservations(
    cart: Cart,
    session: ShopperSession,
    client: MarketplaceClient,
) -> ReservationCheckResult:
    """Re-check the cart's reservation lines now."""
    result = await ReservationConflictChecker(client).check(cart, session)
    if result.evicted:
        await PricingCoordinator(client).refresh(cart, session)
    return result


@router.delete(
    "/cart/eviction-notice",
    response_model=CartView,
    summary="Dismiss eviction notice",
)
async def dismiss_eviction_notice(cart: Cart) -> CartView:
    """Hide the banner listing evicted reservations."""
    cart.dismiss_eviction_notice()
    return cart.view()


@router.delete(
    "/cart",
    response_model=CartView,
    summary="Empty cart",
)
async def clear_cart(cart: Cart) -> CartView:
    """Empty the cart."""
    cart.clear()
    return cart.view()
