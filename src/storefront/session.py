"""Session-scoped storefront state: the shopper's identity and cart."""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from decimal import Decimal

from src.schemas.address import ShippingAddress
from src.schemas.cart import CartItem, CartItemCreate, CartView, EvictedItem, EvictionNotice
from src.schemas.pricing import PricingState, PricingStatus

logger = logging.getLogger(__name__)


@dataclass
class StorefrontSession:
    """The shopper's identity as seen by the storefront.

    Holds the incoming request cookies, which are forwarded on every call
    to the marketplace API.
    """

    cookies: dict[str, str] = field(default_factory=dict)
    auth_cookie_name: str = "auth_token"

    @property
    def has_auth(self) -> bool:
        """Check if the session carries the auth cookie."""
        return bool(self.cookies.get(self.auth_cookie_name))

    def cookie_header(self) -> str:
        """Render the cookies as a Cookie header value."""
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())


class CartStore:
    """One shopper's cart.

    Besides the lines and the selected address, the cart owns two
    generation counters. Every pricing refresh and every reservation check
    takes the next number, and a result is applied only while its number
    is still the latest, so slow responses can never overwrite newer state.
    """

    def __init__(self, cart_id: str) -> None:
        self.cart_id = cart_id
        self.items: list[CartItem] = []
        self.shipping_address: ShippingAddress | None = None
        self.eviction_notice: EvictionNotice | None = None
        self.pricing = PricingState.placeholder(PricingStatus.EMPTY, 0)
        self.pricing_task: asyncio.Task | None = None
        self.session: StorefrontSession | None = None
        self.last_accessed = time.monotonic()
        self._pricing_generation = 0
        self._reservation_generation = 0

    @property
    def item_count(self) -> int:
        """Total quantity across lines."""
        return sum(item.quantity for item in self.items)

    @property
    def estimated_subtotal(self) -> Decimal:
        """Locally computed subtotal, for display before pricing returns."""
        return sum((item.subtotal for item in self.items), Decimal("0"))

    def touch(self) -> None:
        """Record that the shopper used the cart."""
        self.last_accessed = time.monotonic()

    def idle_seconds(self, now: float | None = None) -> float:
        """Seconds since the shopper last used the cart."""
        return (now if now is not None else time.monotonic()) - self.last_accessed

    def get_item(self, item_id: str) -> CartItem | None:
        """Find a line by id."""
        return next((item for item in self.items if item.id == item_id), None)

    def reservation_items(self) -> list[CartItem]:
        """Lines that book a date/time slot."""
        return [item for item in self.items if item.reservation_slot]

    def add_item(self, data: CartItemCreate) -> CartItem:
        """Add a line, merging quantities for a repeated non-reservation product.

        Args:
            data: Line to add.

        Returns:
            CartItem: The new or updated line.
        """
        if not data.is_reservation:
            for index, item in enumerate(self.items):
                if item.product_id == data.product_id and item.store_id == data.store_id and not item.is_reservation:
                    merged = item.model_copy(update={"quantity": item.quantity + data.quantity})
                    self.items[index] = merged
                    return merged

        item = CartItem(**data.model_dump(exclude={"subtotal"}))
        self.items.append(item)
        return item

    def update_quantity(self, item_id: str, quantity: int) -> CartItem | None:
        """Change a line's quantity.

        Returns:
            CartItem | None: The updated line, or None if it is not in the cart.
        """
        for index, item in enumerate(self.items):
            if item.id == item_id:
                updated = item.model_copy(update={"quantity": quantity})
                self.items[index] = updated
                return updated
        return None

    def remove_item(self, item_id: str) -> bool:
        """Remove a line. Returns False if it was not in the cart."""
        remaining = [item for item in self.items if item.id != item_id]
        removed = len(remaining) != len(self.items)
        self.items = remaining
        return removed

    def clear(self) -> None:
        """Empty the cart after a completed checkout."""
        self.items = []
        self.eviction_notice = None
        self.pricing = PricingState.placeholder(PricingStatus.EMPTY, self.next_pricing_generation())

    def select_address(self, address: ShippingAddress) -> None:
        """Set the destination used for pricing."""
        self.shipping_address = address

    def next_pricing_generation(self) -> int:
        """Start a new pricing generation and return its number."""
        self._pricing_generation += 1
        return self._pricing_generation

    def is_current_pricing(self, generation: int) -> bool:
        """Check that no newer pricing refresh has started."""
        return generation == self._pricing_generation

    def next_reservation_generation(self) -> int:
        """Start a new reservation check generation and return its number."""
        self._reservation_generation += 1
        return self._reservation_generation

    def is_current_reservation(self, generation: int) -> bool:
        """Check that no newer reservation check has started."""
        return generation == self._reservation_generation

    def evict(self, item_ids: list[str]) -> list[EvictedItem]:
        """Remove lines whose slots were taken and record them in the notice.

        Lines already gone from the cart are ignored, and a line is listed
        in the notice at most once.

        Returns:
            list[EvictedItem]: Lines removed by this call.
        """
        evicted: list[EvictedItem] = []
        for item_id in item_ids:
            item = self.get_item(item_id)
            if item is None:
                continue
            self.remove_item(item_id)
            evicted.append(
                EvictedItem(
                    id=item.id,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    reservation_date=item.reservation_date,
                    reservation_time=item.reservation_time,
                )
            )

        if evicted:
            notice = self.eviction_notice or EvictionNotice()
            listed = {entry.id for entry in notice.items}
            notice.items.extend(entry for entry in evicted if entry.id not in listed)
            self.eviction_notice = notice
        return evicted

    def dismiss_eviction_notice(self) -> None:
        """Hide the eviction banner."""
        self.eviction_notice = None

    def view(self) -> CartView:
        """Snapshot of the cart for rendering."""
        return CartView(
            items=list(self.items),
            item_count=self.item_count,
            estimated_subtotal=self.estimated_subtotal,
            shipping_address=self.shipping_address,
            pricing=self.pricing,
            eviction_notice=self.eviction_notice,
        )


class CartRegistry:
    """Carts for every live storefront session, keyed by cart cookie."""

    def __init__(self) -> None:
        self._carts: dict[str, CartStore] = {}

    def get(self, cart_id: str | None) -> CartStore | None:
        """Get an existing cart."""
        return self._carts.get(cart_id) if cart_id else None

    def get_or_create(self, cart_id: str | None) -> CartStore:
        """Get the cart for a cookie value.

        Unknown or missing values get a new cart with a freshly generated id.
        """
        cart = self.get(cart_id)
        if cart is None:
            cart = CartStore(secrets.token_urlsafe(24))
            self._carts[cart.cart_id] = cart
            logger.debug("Created cart %s", cart.cart_id)
        cart.touch()
        return cart

    def discard(self, cart_id: str) -> None:
        """Forget a cart, cancelling any pricing refresh still running."""
        cart = self._carts.pop(cart_id, None)
        if cart and cart.pricing_task and not cart.pricing_task.done():
            cart.pricing_task.cancel()

    def carts(self) -> list[CartStore]:
        """All live carts."""
        return list(self._carts.values())

    def __len__(self) -> int:
        return len(self._carts)

    def prune(self, max_idle_seconds: float, now: float | None = None) -> int:
        """Discard carts nobody has used for longer than max_idle_seconds.

        Returns:
            int: Number of carts discarded.
        """
        now = now if now is not None else time.monotonic()
        idle = [cart.cart_id for cart in self._carts.values() if cart.idle_seconds(now) > max_idle_seconds]
        for cart_id in idle:
            self.discard(cart_id)
        if idle:
            logger.info("Pruned %d idle carts", len(idle))
        return len(idle)
