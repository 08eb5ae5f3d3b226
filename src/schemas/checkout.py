"""Checkout completion Pydantic schemas for API request/response models."""

from pydantic import Field, field_validator

from src.schemas.common import CamelModel, FailureCode

RECOVERY_HINT = "Please refresh this page or return to your orders to verify the status."


class CheckoutCompleteRequest(CamelModel):
    """Schema for POST /payments/checkout-complete and the guest variant."""

    session_id: str = Field(min_length=1, description="Stripe Checkout Session ID")

    @field_validator("session_id")
    @classmethod
    def strip_session_id(cls, value: str) -> str:
        """Reject whitespace-only session ids."""
        value = value.strip()
        if not value:
            raise ValueError("A valid Stripe checkout session ID is required.")
        return value


class CheckoutCompleteResponse(CamelModel):
    """Schema for checkout-session completion responses."""

    success: bool = Field(description="Whether orders exist for the session")
    message: str | None = Field(default=None, description="Outcome message")
    order_ids: list[str] | None = Field(default=None, description="Orders created by the session")


class CheckoutCompletionResult(CamelModel):
    """Result of resolving a completed payment into its orders.

    Produced fresh on every resolution and never persisted.
    """

    success: bool = Field(description="Whether the order set was resolved")
    message: str = Field(description="Human-readable outcome")
    order_ids: list[str] = Field(default_factory=list, description="Resolved order ids")
    error: FailureCode | None = Field(default=None, description="Failure code when success is False")

    @classmethod
    def resolved(cls, order_ids: list[str], message: str = "Order completed successfully.") -> "CheckoutCompletionResult":
        """Build a successful result."""
        return cls(success=True, message=message, order_ids=list(order_ids))

    @classmethod
    def failed(cls, error: FailureCode, message: str) -> "CheckoutCompletionResult":
        """Build a failed result."""
        return cls(success=False, message=message, error=error)


class CheckoutSuccessView(CamelModel):
    """What the storefront shows after returning from the payment page."""

    result: CheckoutCompletionResult = Field(description="Resolution outcome")
    headline: str = Field(description="Page headline")
    next_step: str | None = Field(default=None, description="Recovery guidance when resolution failed")
    clear_cart: bool = Field(default=False, description="Whether the storefront cleared the cart")

    @classmethod
    def from_result(cls, result: CheckoutCompletionResult, clear_cart: bool) -> "CheckoutSuccessView":
        """Build the view for a resolution result."""
        if result.success:
            return cls(result=result, headline="Thank you for your purchase!", clear_cart=clear_cart)
        return cls(
            result=result,
            headline="We're processing your order",
            next_step=RECOVERY_HINT,
            clear_cart=clear_cart,
        )
