"""Admin order console routes: listing and status changes."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import StaffUser
from src.api.middleware.error_handler import error_for_failure
from src.core.config import get_settings
from src.schemas.order import OrderListResponse, OrderResponse, OrderStatus, OrderStatusUpdate
from src.services.activity_log_service import ActivityLogService
from src.services.order_service import OrderService
from src.services.order_status_service import OrderStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Paged order listing for store operators, filterable by status, store and customer.",
)
async def list_orders(
    user: StaffUser,
    order_status: Annotated[OrderStatus | None, Query(alias="status")] = None,
    store_id: Annotated[str | None, Query(alias="storeId")] = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    limit: Annotated[int, Query(ge=1)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> OrderListResponse:
    """List orders across customers.

    Args:
        user: The authenticated staff member.
        order_status: Only orders in this status.
        store_id: Only orders for this store.
        user_id: Only orders placed by this customer.
        limit: Page size (capped by ORDER_PAGE_SIZE_MAX).
        offset: Number of orders to skip.

    Returns:
        OrderListResponse: The page of orders and the total count.
    """
    orders, total = await OrderService().list_orders(
        status=order_status.value if order_status else None,
        store_id=store_id,
        user_id=user_id,
        limit=min(limit, get_settings().order_page_size_max),
        offset=offset,
    )
    return OrderListResponse(orders=[OrderResponse.model_validate(order) for order in orders], total=total)


@router.get(
    "/{order_id}/activity",
    summary="Order audit trail",
    description="Status and tracking changes recorded for an order, oldest first.",
)
async def get_order_activity(order_id: UUID, user: StaffUser) -> list[dict]:
    """Get the activity log for an order."""
    return await ActivityLogService().list_for_order(order_id)


async def _apply_status_update(order_id: UUID, data: OrderStatusUpdate, user: StaffUser) -> OrderResponse:
    result = await OrderStatusService().apply_status(
        order_id,
        data.status,
        tracking_number=data.tracking_number,
        actor=user,
    )
    if not result.success:
        raise error_for_failure(result.error, result.message)
    return result.order


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description=(
        "Moves an order along the status graph and/or records a tracking number. "
        "Illegal transitions are rejected with 409."
    ),
)
async def update_order_status(order_id: UUID, data: OrderStatusUpdate, user: StaffUser) -> OrderResponse:
    """Apply a status change to an order.

    Args:
        order_id: The order's UUID.
        data: Requested status and optional tracking number.
        user: The authenticated staff member.

    Returns:
        OrderResponse: The updated order.

    Raises:
        NotFoundError: 404 if the order does not exist.
        BadRequestError: 400 if nothing would change.
        ConflictError: 409 for illegal transitions and concurrent edits.
        ServiceUnavailableError: 503 if the order store is unavailable.
    """
    return await _apply_status_update(order_id, data, user)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Same as PUT.",
)
async def patch_order_status(order_id: UUID, data: OrderStatusUpdate, user: StaffUser) -> OrderResponse:
    """Apply a status change to an order (PATCH form)."""
    return await _apply_status_update(order_id, data, user)
