"""Database model type definitions."""

from src.models.activity_log import ActivityLog, ActivityLogCreate
from src.models.address import ShippingAddressRow
from src.models.order import Order, OrderCreate, OrderItem, OrderStatus, OrderUpdate

__all__ = [
    "ActivityLog",
    "ActivityLogCreate",
    "Order",
    "OrderCreate",
    "OrderItem",
    "OrderStatus",
    "OrderUpdate",
    "ShippingAddressRow",
]
