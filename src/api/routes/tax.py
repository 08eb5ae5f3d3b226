"""Tax and pricing routes."""

import logging

from fastapi import APIRouter

from src.api.middleware.error_handler import ValidationError
from src.schemas.pricing import PricingBreakdown, PricingRequest, TaxRequest, TaxResponse
from src.services.pricing_service import InvalidPricingInputError, PricingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tax", tags=["tax"])


@router.post(
    "/calculate-pricing",
    response_model=PricingBreakdown,
    summary="Price a cart",
    description="Computes subtotal, tax, shipping and total for cart items shipped to an address.",
)
async def calculate_pricing(data: PricingRequest) -> PricingBreakdown:
    """Compute the full price breakdown.

    Args:
        data: Items and destination.

    Returns:
        PricingBreakdown: subtotal, tax, shipping and total.

    Raises:
        ValidationError: 422 if the subtotal is not positive.
    """
    try:
        return await PricingService().compute_pricing(data.items, data.shipping_address)
    except InvalidPricingInputError as e:
        raise ValidationError(str(e)) from e


@router.post(
    "/calculate",
    response_model=TaxResponse,
    summary="Calculate tax",
    description="Computes tax for a subtotal and destination, without shipping.",
)
async def calculate_tax(data: TaxRequest) -> TaxResponse:
    """Compute tax only.

    Args:
        data: Subtotal and destination.

    Returns:
        TaxResponse: Tax amount, rate and subtotal plus tax.

    Raises:
        ValidationError: 422 if the subtotal is not positive.
    """
    try:
        return await PricingService().calculate_tax(
            data.subtotal,
            data.zip_code,
            data.state_province,
            data.country,
        )
    except InvalidPricingInputError as e:
        raise ValidationError(str(e)) from e
