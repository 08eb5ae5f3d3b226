"""Pricing and tax Pydantic schemas."""

from decimal import Decimal
from enum import Enum

from pydantic import Field, field_validator

from src.schemas.common import CamelModel, FailureCode, Money


class PricingItem(CamelModel):
    """A priced quantity submitted for a breakdown."""

    price: Money = Field(ge=0, description="Unit price")
    quantity: int = Field(gt=0, description="Quantity")


class PricingAddress(CamelModel):
    """The parts of a shipping address that affect pricing."""

    zip_code: str = Field(min_length=1, description="ZIP or postal code")
    state_province: str | None = Field(default=None, description="State or province code")
    country: str = Field(default="US", description="ISO country code")

    @field_validator("zip_code")
    @classmethod
    def require_postal_code(cls, value: str) -> str:
        """Reject blank postal codes."""
        value = value.strip()
        if not value:
            raise ValueError("ZIP or postal code is required")
        return value

    @field_validator("state_province", "country", mode="before")
    @classmethod
    def strip_optional(cls, value: str | None) -> str | None:
        """Trim whitespace around optional fields."""
        return value.strip() if isinstance(value, str) else value


class PricingRequest(CamelModel):
    """Schema for POST /tax/calculate-pricing."""

    items: list[PricingItem] = Field(min_length=1, description="Items with price and quantity")
    shipping_address: PricingAddress = Field(description="Destination used for tax")


class PricingBreakdown(CamelModel):
    """Reproducible decomposition of a cart's cost."""

    subtotal: Money = Field(description="Sum of price x quantity")
    tax_amount: Money = Field(description="Tax charged on the subtotal")
    tax_rate: Money = Field(description="Tax rate applied (fraction, e.g. 0.0725)")
    shipping_amount: Money = Field(description="Shipping fee")
    total: Money = Field(description="subtotal + tax + shipping")


class TaxRequest(CamelModel):
    """Schema for POST /tax/calculate."""

    subtotal: Money = Field(gt=0, description="Order subtotal")
    zip_code: str = Field(min_length=1, description="ZIP or postal code")
    state_province: str | None = Field(default=None, description="State or province code")
    country: str | None = Field(default=None, description="ISO country code")


class TaxResponse(CamelModel):
    """Schema for tax-only quotes."""

    tax_amount: Money = Field(description="Tax charged on the subtotal")
    tax_rate: Money = Field(description="Tax rate applied")
    total: Money = Field(description="subtotal + tax")


class PricingStatus(str, Enum):
    """Display state of a cart's totals."""

    READY = "ready"
    CALCULATING = "calculating"
    EMPTY = "empty"
    ENTER_ADDRESS = "enter_address"
    UNAVAILABLE = "unavailable"


class PricingState(CamelModel):
    """Pricing currently shown for a cart.

    A breakdown is only present when it was computed for the cart's current
    items and address. Otherwise the state carries a placeholder status and,
    when pricing failed, a labelled local subtotal estimate.
    """

    status: PricingStatus = Field(default=PricingStatus.EMPTY, description="Display state")
    breakdown: PricingBreakdown | None = Field(default=None, description="Authoritative breakdown")
    estimated_subtotal: Money | None = Field(default=None, description="Local subtotal estimate")
    generation: int = Field(default=0, description="Refresh generation this state belongs to")
    message: str | None = Field(default=None, description="Placeholder text for the UI")
    error: FailureCode | None = Field(default=None, description="Failure code when pricing is unavailable")

    @classmethod
    def placeholder(cls, status: PricingStatus, generation: int, estimated_subtotal: Decimal | None = None) -> "PricingState":
        """Build a state without an authoritative breakdown."""
        messages = {
            PricingStatus.EMPTY: "Your cart is empty",
            PricingStatus.ENTER_ADDRESS: "Enter a shipping address to calculate tax and shipping",
            PricingStatus.CALCULATING: "Calculating...",
            PricingStatus.UNAVAILABLE: "Estimated subtotal shown; tax and shipping are calculated at checkout",
        }
        return cls(
            status=status,
            estimated_subtotal=estimated_subtotal,
            generation=generation,
            message=messages.get(status),
            error=FailureCode.PRICING_UNAVAILABLE if status == PricingStatus.UNAVAILABLE else None,
        )
