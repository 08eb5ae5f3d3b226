"""Order model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


# Order status values matching the database enum
OrderStatus = Literal[
    "pending_payment",
    "pending",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "return_processing",
    "returned",
]


class ShippingAddressSnapshot(TypedDict, total=False):
    """Shipping address copied onto the order at creation time.

    Stored in the shipping_address JSONB column.
    """

    street_address: str
    apt_number: str | None
    city: str
    state_province: str
    zip_code: str
    country: str


class OrderItem(TypedDict, total=False):
    """Structure for a single item in an order.

    Stored as part of the items JSONB array. Product fields are snapshots
    taken at purchase time.
    """

    product_id: str
    product_name: str
    product_image: str | None
    quantity: int
    price: float
    subtotal: float
    is_reservation: bool
    reservation_date: str | None
    reservation_time: str | None
    reservation_notes: str | None


class Order(TypedDict):
    """Order table row representation.

    Maps directly to the database schema.
    """

    id: UUID
    user_id: UUID | None
    store_id: str
    store_name: str
    items: list[OrderItem]
    total_amount: float
    total_refunded: float
    currency: str
    shipping_address: ShippingAddressSnapshot
    payment_method: str
    status: OrderStatus
    order_date: datetime
    shipped_date: datetime | None
    delivered_date: datetime | None
    tracking_number: str | None
    stripe_session_id: str | None
    payment_intent_id: str | None
    guest_email: str | None
    guest_full_name: str | None
    guest_phone_number: str | None
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict, total=False):
    """Data required to create a new order.

    Used when materializing orders after a completed checkout.
    """

    user_id: str | None
    store_id: str
    store_name: str
    items: list[OrderItem]
    total_amount: float
    currency: str
    shipping_address: ShippingAddressSnapshot
    payment_method: str
    status: OrderStatus
    order_date: str
    stripe_session_id: str | None
    payment_intent_id: str | None
    guest_email: str | None
    guest_full_name: str | None
    guest_phone_number: str | None


class OrderUpdate(TypedDict, total=False):
    """Data that can be updated on an order.

    Only the status machine and refund bookkeeping write these fields.
    """

    status: OrderStatus
    shipped_date: str | None
    delivered_date: str | None
    tracking_number: str | None
    total_refunded: float
    updated_at: str
