"""Shipping address Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from src.schemas.common import CamelModel


class ShippingAddress(CamelModel):
    """Postal address used as a shipping destination.

    Copied by value onto orders so later edits to a saved address never
    change historical orders.
    """

    street_address: str = Field(default="", description="Street address")
    apt_number: str | None = Field(default=None, description="Apartment, suite or unit")
    city: str = Field(default="", description="City")
    state_province: str = Field(default="", description="State or province code")
    zip_code: str = Field(default="", description="ZIP or postal code")
    country: str = Field(default="US", description="ISO country code")

    @property
    def has_postal_code(self) -> bool:
        """Check if a non-blank postal code is present."""
        return bool(self.zip_code and self.zip_code.strip())


class ShippingAddressCreate(ShippingAddress):
    """Schema for saving an address to a user's account."""

    full_name: str | None = Field(default=None, description="Recipient name")
    phone_number: str | None = Field(default=None, description="Recipient phone number")
    is_default: bool = Field(default=False, description="Make this the user's default address")


class ShippingAddressResponse(ShippingAddressCreate):
    """Schema for a saved address returned by the API."""

    id: UUID = Field(description="Address unique identifier")
    user_id: UUID = Field(description="Owning user")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class ShippingAddressListResponse(CamelModel):
    """Schema for a user's saved addresses."""

    items: list[ShippingAddressResponse] = Field(description="Saved addresses, default first")
