"""Keeps a cart's displayed totals in step with its lines and address."""

import asyncio
import logging

from src.core.config import get_settings
from src.schemas.address import ShippingAddress
from src.schemas.order import ReservationLine
from src.schemas.pricing import PricingBreakdown, PricingState, PricingStatus
from src.storefront.client import MarketplaceApiClient, UpstreamError
from src.storefront.session import CartStore, StorefrontSession

logger = logging.getLogger(__name__)


class PricingCoordinator:
    """Debounced pricing refreshes for carts.

    Every refresh takes a new generation from the cart and cancels the
    refresh already in flight. A breakdown is applied only while its
    generation is the cart's latest, and a failed refresh never falls back
    to an older breakdown.
    """

    def __init__(self, client: MarketplaceApiClient, debounce_seconds: float | None = None) -> None:
        """Initialize the coordinator.

        Args:
            client: Marketplace API client.
            debounce_seconds: Quiet period before a refresh calls the API
                (defaults to PRICING_DEBOUNCE_SECONDS).
        """
        self.client = client
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else get_settings().pricing_debounce_seconds
        )

    async def compute_pricing(
        self,
        session: StorefrontSession,
        items: list[ReservationLine],
        address: ShippingAddress,
    ) -> PricingBreakdown | None:
        """Fetch the authoritative breakdown.

        Returns:
            PricingBreakdown | None: The breakdown, or None if pricing is
            unavailable.
        """
        try:
            return await self.client.calculate_pricing(session, items, address)
        except UpstreamError as e:
            logger.warning("Pricing unavailable: %s", e.message)
            return None

    def schedule_refresh(self, cart: CartStore, session: StorefrontSession) -> asyncio.Task | None:
        """Start a refresh for the cart's current lines and address.

        Returns:
            asyncio.Task | None: The refresh task, or None when the cart
            cannot be priced yet and a placeholder was set instead.
        """
        generation = cart.next_pricing_generation()
        self._cancel_in_flight(cart)

        if not cart.items or cart.estimated_subtotal <= 0:
            cart.pricing = PricingState.placeholder(PricingStatus.EMPTY, generation)
            return None

        if cart.shipping_address is None or not cart.shipping_address.has_postal_code:
            cart.pricing = PricingState.placeholder(
                PricingStatus.ENTER_ADDRESS, generation, cart.estimated_subtotal
            )
            return None

        cart.pricing = PricingState.placeholder(PricingStatus.CALCULATING, generation, cart.estimated_subtotal)
        cart.pricing_task = asyncio.create_task(self._run(cart, session, generation))
        return cart.pricing_task

    async def refresh(self, cart: CartStore, session: StorefrontSession) -> PricingState:
        """Refresh pricing and wait for this refresh to settle.

        If a newer refresh supersedes this one, the state current at that
        point is returned.
        """
        task = self.schedule_refresh(cart, session)
        if task is not None:
            # wait() does not propagate the task's cancellation to the caller
            await asyncio.wait({task})
        return cart.pricing

    async def select_address(
        self,
        cart: CartStore,
        session: StorefrontSession,
        address: ShippingAddress,
    ) -> PricingState:
        """Select a destination and reprice, even if the address is unchanged."""
        cart.select_address(address)
        return await self.refresh(cart, session)

    async def _run(self, cart: CartStore, session: StorefrontSession, generation: int) -> None:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)

        items = list(cart.items)
        address = cart.shipping_address
        breakdown = await self.compute_pricing(session, items, address)

        if not cart.is_current_pricing(generation):
            logger.debug("Discarding pricing generation %d for cart %s", generation, cart.cart_id)
            return

        if breakdown is None:
            cart.pricing = PricingState.placeholder(PricingStatus.UNAVAILABLE, generation, cart.estimated_subtotal)
        else:
            cart.pricing = PricingState(status=PricingStatus.READY, breakdown=breakdown, generation=generation)

    @staticmethod
    def _cancel_in_flight(cart: CartStore) -> None:
        task = cart.pricing_task
        if task is not None and not task.done():
            task.cancel()
        cart.pricing_task = None
