"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import Field, computed_field, field_validator, model_validator

from src.schemas.address import ShippingAddress
from src.schemas.common import CamelModel, FailureCode, Money
from src.schemas.payment import PaymentMethod, parse_payment_method


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_PROCESSING = "return_processing"
    RETURNED = "returned"


class ReservationLine(CamelModel):
    """Line fields shared by cart items and order items.

    Reservation fields are all-or-nothing: they may only be set on a
    reservation line, and a reservation line must name its date and time.
    """

    product_id: str = Field(description="Product UUID")
    product_name: str = Field(description="Product name at time of purchase")
    product_image: str | None = Field(default=None, description="Product image URL at time of purchase")
    quantity: int = Field(ge=1, description="Quantity")
    price: Money = Field(ge=0, description="Unit price")
    is_reservation: bool = Field(default=False, description="Line books a date/time slot")
    reservation_date: str | None = Field(
        default=None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Reserved date (YYYY-MM-DD)"
    )
    reservation_time: str | None = Field(
        default=None, pattern=r"^\d{2}:\d{2}$", description="Reserved time (HH:MM)"
    )
    reservation_notes: str | None = Field(default=None, description="Customer notes for the reservation")

    @field_validator("reservation_time", mode="before")
    @classmethod
    def trim_seconds(cls, value: Any) -> Any:
        """Normalize database TIME values (HH:MM:SS) to HH:MM."""
        if isinstance(value, str) and len(value) == 8 and value.count(":") == 2:
            return value[:5]
        return value

    @model_validator(mode="after")
    def check_reservation_fields(self) -> "ReservationLine":
        """Enforce that reservation fields travel together."""
        if self.is_reservation:
            if not self.reservation_date or not self.reservation_time:
                raise ValueError("Reservation items require reservation_date and reservation_time")
        elif self.reservation_date or self.reservation_time or self.reservation_notes:
            raise ValueError("Reservation fields are only allowed on reservation items")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> Money:
        """Line subtotal (quantity x unit price)."""
        return Decimal(self.price) * self.quantity

    @property
    def reservation_slot(self) -> tuple[str, str, str] | None:
        """The (product_id, date, time) slot this line books, if any."""
        if self.is_reservation and self.reservation_date and self.reservation_time:
            return (self.product_id, self.reservation_date, self.reservation_time)
        return None


class OrderItemSchema(ReservationLine):
    """Schema for a single item in an order."""


class OrderResponse(CamelModel):
    """Schema for order API responses."""

    id: UUID = Field(description="Order unique identifier")
    user_id: UUID | None = Field(default=None, description="Owning user (None for guest orders)")
    store_id: str = Field(description="Store that fulfils the order")
    store_name: str = Field(default="", description="Store name at time of purchase")
    items: list[OrderItemSchema] = Field(default_factory=list, description="Ordered items")
    total_amount: Money = Field(ge=0, description="Order total")
    total_refunded: Money = Field(default=Decimal("0"), ge=0, description="Amount refunded so far")
    currency: str = Field(default="usd", description="Currency code")
    shipping_address: ShippingAddress = Field(description="Shipping address snapshot")
    payment_method: str = Field(default="", description="Stored payment method descriptor")
    payment: PaymentMethod = Field(description="Parsed payment method")
    status: OrderStatus = Field(description="Order status")
    order_date: datetime | None = Field(default=None, description="Order placement timestamp")
    shipped_date: datetime | None = Field(default=None, description="First time the order reached shipped")
    delivered_date: datetime | None = Field(default=None, description="First time the order reached delivered")
    tracking_number: str | None = Field(default=None, description="Carrier tracking number")
    stripe_session_id: str | None = Field(default=None, description="Stripe Checkout Session ID")
    payment_intent_id: str | None = Field(default=None, description="Stripe PaymentIntent ID")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    @model_validator(mode="before")
    @classmethod
    def resolve_payment(cls, data: Any) -> Any:
        """Parse the payment method descriptor once, at ingestion."""
        if isinstance(data, dict) and "payment" not in data:
            data = dict(data)
            data["payment"] = parse_payment_method(data.get("payment_method") or data.get("paymentMethod"))
            if data.get("total_refunded") is None:
                data.pop("total_refunded", None)
        return data

    @model_validator(mode="after")
    def check_refund_bound(self) -> "OrderResponse":
        """Refunds can never exceed the order total."""
        if self.total_refunded > self.total_amount:
            raise ValueError("total_refunded cannot exceed total_amount")
        return self


class OrderListResponse(CamelModel):
    """Schema for paged order listings."""

    orders: list[OrderResponse] = Field(description="Orders on this page")
    total: int = Field(ge=0, description="Total number of matching orders")


class OrdersByPaymentIntentResponse(CamelModel):
    """Schema for the orders created by a single payment intent."""

    success: bool = Field(default=True, description="Lookup succeeded")
    data: list[OrderResponse] = Field(description="Orders carrying the payment intent")


class OrderStatusUpdate(CamelModel):
    """Schema for PUT/PATCH /admin/orders/{id}/status."""

    status: OrderStatus = Field(description="Requested status")
    tracking_number: str | None = Field(default=None, description="Carrier tracking number")

    @field_validator("tracking_number", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat blank tracking numbers as not provided."""
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


class StatusTransitionResult(CamelModel):
    """Outcome of applying a status change to an order."""

    success: bool = Field(description="Whether the change was applied")
    order: OrderResponse | None = Field(default=None, description="Updated order on success")
    error: FailureCode | None = Field(default=None, description="Failure code when success is False")
    message: str = Field(default="", description="Human-readable outcome")

    @classmethod
    def applied(cls, order: OrderResponse, message: str) -> "StatusTransitionResult":
        """Build a successful result."""
        return cls(success=True, order=order, message=message)

    @classmethod
    def failed(cls, error: FailureCode, message: str) -> "StatusTransitionResult":
        """Build a failed result."""
        return cls(success=False, error=error, message=message)
