"""Reservation conflict checker: evicts cart lines whose slot was taken."""

import asyncio
import logging

from src.schemas.cart import CartItem, ReservationCheckResult
from src.storefront.client import MarketplaceApiClient, UpstreamError
from src.storefront.pricing_coordinator import PricingCoordinator
from src.storefront.session import CartRegistry, CartStore, StorefrontSession

logger = logging.getLogger(__name__)


class ReservationConflictChecker:
    """Re-checks the slots booked by a cart's reservation lines.

    A line is evicted only on an explicit "not available" answer. A failed
    or timed-out lookup leaves the line in the cart.
    """

    def __init__(self, client: MarketplaceApiClient) -> None:
        self.client = client

    async def check(self, cart: CartStore, session: StorefrontSession) -> ReservationCheckResult:
        """Check every reservation line in the cart concurrently.

        Args:
            cart: Cart to check.
            session: Shopper session used for the lookups.

        Returns:
            ReservationCheckResult: What was checked and what was evicted.
        """
        generation = cart.next_reservation_generation()
        items = cart.reservation_items()
        if not items:
            return ReservationCheckResult()

        answers = await asyncio.gather(*(self._is_available(session, item) for item in items))

        if not cart.is_current_reservation(generation):
            logger.debug("Discarding reservation check %d for cart %s", generation, cart.cart_id)
            return ReservationCheckResult(checked=len(items), stale=True)

        taken = [item.id for item, available in zip(items, answers) if available is False]
        unverified = [item.id for item, available in zip(items, answers) if available is None]
        evicted = cart.evict(taken)

        for entry in evicted:
            logger.info(
                "Evicted reservation %s (%s %s) from cart %s",
                entry.product_id,
                entry.reservation_date,
                entry.reservation_time,
                cart.cart_id,
            )

        return ReservationCheckResult(checked=len(items), evicted=evicted, unverified=unverified)

    async def _is_available(self, session: StorefrontSession, item: CartItem) -> bool | None:
        """Look up one slot. None means the answer is unknown."""
        try:
            response = await self.client.check_time_slot(
                session,
                item.product_id,
                item.reservation_date,
                item.reservation_time,
            )
        except UpstreamError as e:
            logger.warning("Slot check failed for cart line %s, keeping it: %s", item.id, e.message)
            return None
        return response.available


async def sweep_reservations(
    registry: CartRegistry,
    checker: ReservationConflictChecker,
    pricing: PricingCoordinator,
    max_idle_seconds: float | None = None,
) -> None:
    """Prune idle carts, then re-check every cart holding reservation lines.

    Carts that lose a line are repriced, so a breakdown computed for the
    old lines is never left on display.
    """
    if max_idle_seconds is not None:
        registry.prune(max_idle_seconds)

    carts = [cart for cart in registry.carts() if cart.reservation_items()]
    if not carts:
        return

    results = await asyncio.gather(*(_sweep_cart(cart, checker, pricing) for cart in carts))
    evicted = sum(len(result.evicted) for result in results)
    logger.info("Reservation sweep checked %d carts, evicted %d lines", len(carts), evicted)


async def _sweep_cart(
    cart: CartStore,
    checker: ReservationConflictChecker,
    pricing: PricingCoordinator,
) -> ReservationCheckResult:
    session = cart.session or StorefrontSession()
    result = await checker.check(cart, session)
    if result.evicted:
        await pricing.refresh(cart, session)
    return result
