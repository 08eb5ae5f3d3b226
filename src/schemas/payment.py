"""Payment method descriptors parsed into a tagged variant."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

CHECKOUT_SESSION_PREFIX = "stripe_checkout:"
PAYMENT_INTENT_PREFIX = "stripe_payment_intent:"


class ProviderTransaction(BaseModel):
    """Payment processed by the external payment provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["provider"] = "provider"
    provider: str = Field(default="stripe", description="Payment provider name")
    flow: Literal["checkout_session", "payment_intent"] = Field(description="Provider flow that took the payment")
    reference: str = Field(description="Provider-side identifier (cs_... or pi_...)")


class LocalTransaction(BaseModel):
    """Payment recorded without the external provider (cash, manual entry)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    method: str = Field(description="Free-form payment method label")


PaymentMethod = Annotated[ProviderTransaction | LocalTransaction, Field(discriminator="kind")]


def parse_payment_method(descriptor: str | None) -> ProviderTransaction | LocalTransaction:
    """Classify a stored payment_method descriptor.

    Args:
        descriptor: Value of the order's payment_method column.

    Returns:
        ProviderTransaction | LocalTransaction: The parsed variant.
    """
    value = (descriptor or "").strip()

    if value.startswith(CHECKOUT_SESSION_PREFIX) and len(value) > len(CHECKOUT_SESSION_PREFIX):
        return ProviderTransaction(flow="checkout_session", reference=value[len(CHECKOUT_SESSION_PREFIX):])

    if value.startswith(PAYMENT_INTENT_PREFIX) and len(value) > len(PAYMENT_INTENT_PREFIX):
        return ProviderTransaction(flow="payment_intent", reference=value[len(PAYMENT_INTENT_PREFIX):])

    return LocalTransaction(method=value or "unknown")


def checkout_session_descriptor(session_id: str) -> str:
    """Build the payment_method descriptor for a Checkout Session payment."""
    return f"{CHECKOUT_SESSION_PREFIX}{session_id}"
