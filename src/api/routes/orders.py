"""Order API routes for shoppers."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from src.api.deps import CurrentUser
from src.core.config import get_settings
from src.schemas.order import (
    OrderListResponse,
    OrderResponse,
    OrdersByPaymentIntentResponse,
    OrderStatus,
)
from src.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "",
    response_model=OrderListResponse | OrdersByPaymentIntentResponse,
    summary="List my orders",
    description=(
        "Returns the caller's orders, newest first. With paymentIntentId, returns the orders "
        "created by that payment intent instead."
    ),
)
async def list_orders(
    user: CurrentUser,
    payment_intent_id: Annotated[str | None, Query(alias="paymentIntentId")] = None,
    order_status: Annotated[OrderStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> OrderListResponse | OrdersByPaymentIntentResponse:
    """List orders for the current user.

    Args:
        user: The authenticated user.
        payment_intent_id: Only orders created by this PaymentIntent.
        order_status: Only orders in this status.
        limit: Page size (capped by ORDER_PAGE_SIZE_MAX).
        offset: Number of orders to skip.

    Returns:
        OrderListResponse | OrdersByPaymentIntentResponse: The orders.
    """
    service = OrderService()

    if payment_intent_id:
        # Staff may look up any payment intent; shoppers only their own orders
        orders = await service.get_orders_by_payment_intent(
            payment_intent_id,
            user_id=None if user.is_staff else user.user_id,
        )
        return OrdersByPaymentIntentResponse(data=[OrderResponse.model_validate(order) for order in orders])

    orders, total = await service.list_orders(
        status=order_status.value if order_status else None,
        user_id=user.user_id,
        limit=min(limit, get_settings().order_page_size_max),
        offset=offset,
    )
    return OrderListResponse(orders=[OrderResponse.model_validate(order) for order in orders], total=total)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order by ID. Only accessible by the order owner or staff.",
)
async def get_order(order_id: UUID, user: CurrentUser) -> OrderResponse:
    """Get a single order by ID.

    Args:
        order_id: The order's UUID.
        user: The authenticated user.

    Returns:
        OrderResponse: The order data.

    Raises:
        HTTPException: 404 if order not found.
        HTTPException: 403 if not authorized to view this order.
    """
    service = OrderService()
    order = await service.get_order(order_id)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found",
        )

    if not await service.can_access_order(order, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this order",
        )

    return OrderResponse.model_validate(order)
