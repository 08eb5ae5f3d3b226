"""Webhook API routes for external service integrations."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.services.checkout_completion_service import CheckoutCompletionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe webhook events. Requires valid signature.",
)
async def stripe_webhook(request: Request) -> dict[str, str]:
    """Handle Stripe webhook events.

    This endpoint receives webhook events from Stripe and processes them.
    The Stripe signature is verified before processing.

    Handles:
    - checkout.session.completed: Creates the session's orders (idempotent)
    - payment_intent.succeeded / amount_capturable_updated: pending_payment orders move to pending
    - payment_intent.payment_failed / canceled: pending_payment orders are cancelled

    Args:
        request: FastAPI request object for reading raw body and headers.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if signature is invalid.
    """
    # Get raw body for signature verification
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    service = CheckoutCompletionService()

    try:
        event = service.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.error("Invalid webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing Stripe webhook event: %s", event_type)

    if event_type == "checkout.session.completed":
        await service.handle_checkout_completed(event)

    elif event_type in ("payment_intent.succeeded", "payment_intent.amount_capturable_updated"):
        moved = await service.handle_payment_intent_authorized(event)
        logger.info("Moved %d orders to pending for %s", len(moved), event_type)

    elif event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
        cancelled = await service.handle_payment_intent_failed(event)
        logger.info("Cancelled %d orders for %s", len(cancelled), event_type)

    else:
        # Log unhandled events but return 200 to acknowledge receipt
        logger.debug("Unhandled webhook event type: %s", event_type)

    # Always return 200 OK to acknowledge receipt (idempotent)
    return {"status": "received"}
