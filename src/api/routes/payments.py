"""Payment completion routes for Stripe Checkout."""

import logging

from fastapi import APIRouter, HTTPException

from src.api.deps import CurrentUser
from src.schemas.checkout import CheckoutCompleteRequest, CheckoutCompleteResponse
from src.services.checkout_completion_service import (
    CheckoutCompletionService,
    CheckoutFinalizationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/checkout-complete",
    response_model=CheckoutCompleteResponse,
    summary="Complete a Checkout Session",
    description=(
        "Creates the orders for a paid Stripe Checkout Session owned by the caller. "
        "Repeated calls return the orders created by the first one."
    ),
)
async def complete_checkout(data: CheckoutCompleteRequest, user: CurrentUser) -> CheckoutCompleteResponse:
    """Complete an authenticated checkout.

    Args:
        data: The Checkout Session to complete.
        user: The authenticated user who owns the session.

    Returns:
        CheckoutCompleteResponse: The orders for the session.

    Raises:
        HTTPException: 400/403/404/500 when the session cannot be completed.
    """
    service = CheckoutCompletionService()
    try:
        result = await service.complete_checkout_session(data.session_id, user_id=user.user_id)
    except CheckoutFinalizationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return CheckoutCompleteResponse(**result)


@router.post(
    "/guest-checkout-complete",
    response_model=CheckoutCompleteResponse,
    summary="Complete a guest Checkout Session",
    description="Creates the orders for a paid guest Checkout Session. No authentication required.",
)
async def complete_guest_checkout(data: CheckoutCompleteRequest) -> CheckoutCompleteResponse:
    """Complete a guest checkout.

    Args:
        data: The Checkout Session to complete.

    Returns:
        CheckoutCompleteResponse: The orders for the session.

    Raises:
        HTTPException: 400/403/404/500 when the session cannot be completed.
    """
    service = CheckoutCompletionService()
    try:
        result = await service.complete_checkout_session(data.session_id, guest=True)
    except CheckoutFinalizationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return CheckoutCompleteResponse(**result)
