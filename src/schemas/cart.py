"""Storefront cart schemas."""

from decimal import Decimal
from uuid import uuid4

from pydantic import Field

from src.schemas.address import ShippingAddress
from src.schemas.common import CamelModel, FailureCode, Money
from src.schemas.order import ReservationLine
from src.schemas.pricing import PricingState


class CartItemCreate(ReservationLine):
    """Schema for adding a line to the cart."""

    store_id: str = Field(description="Store selling the product")
    store_name: str = Field(default="", description="Store name")


class CartItem(CartItemCreate):
    """A line in a session's cart."""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Cart line identifier")


class CartItemQuantityUpdate(CamelModel):
    """Schema for PATCH /storefront/cart/items/{id}."""

    quantity: int = Field(ge=1, description="New quantity")


class EvictedItem(CamelModel):
    """A reservation line removed because its slot was taken."""

    id: str = Field(description="Cart line identifier")
    product_id: str = Field(description="Product UUID")
    product_name: str = Field(description="Product name")
    reservation_date: str | None = Field(default=None, description="Reserved date")
    reservation_time: str | None = Field(default=None, description="Reserved time")
    reason: FailureCode = Field(
        default=FailureCode.RESERVATION_UNAVAILABLE, description="Why the line was removed"
    )


class EvictionNotice(CamelModel):
    """Dismissible banner listing evicted reservation lines."""

    items: list[EvictedItem] = Field(default_factory=list, description="Evicted lines, each listed once")
    message: str = Field(
        default="Some reservations in your cart are no longer available and were removed.",
        description="Banner text",
    )


class CartView(CamelModel):
    """Cart contents and totals as shown to the shopper."""

    items: list[CartItem] = Field(description="Cart lines")
    item_count: int = Field(description="Total quantity across lines")
    estimated_subtotal: Money = Field(default=Decimal("0"), description="Locally computed subtotal")
    shipping_address: ShippingAddress | None = Field(default=None, description="Selected destination")
    pricing: PricingState = Field(description="Authoritative pricing state")
    eviction_notice: EvictionNotice | None = Field(default=None, description="Undismissed eviction banner")


class ReservationCheckResult(CamelModel):
    """Outcome of re-checking a cart's reservation slots."""

    checked: int = Field(default=0, description="Reservation lines checked")
    evicted: list[EvictedItem] = Field(default_factory=list, description="Lines removed because their slot was taken")
    unverified: list[str] = Field(default_factory=list, description="Lines kept because the lookup failed")
    stale: bool = Field(default=False, description="Result discarded because a newer check started")
