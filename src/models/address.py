"""Shipping address model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class ShippingAddressRow(TypedDict):
    """shipping_addresses table row representation.

    At most one row per user has is_default set.
    """

    id: UUID
    user_id: UUID
    full_name: str | None
    phone_number: str | None
    street_address: str
    apt_number: str | None
    city: str
    state_province: str
    zip_code: str
    country: str
    is_default: bool
    created_at: datetime
    updated_at: datetime
