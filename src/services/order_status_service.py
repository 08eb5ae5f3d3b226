"""Order status state machine."""

import logging
from typing import Any
from uuid import UUID

from src.core.locks import get_order_locks
from src.models.order import OrderUpdate
from src.schemas.auth import UserContext
from src.schemas.common import FailureCode, utc_now
from src.schemas.order import OrderResponse, OrderStatus, StatusTransitionResult
from src.services.activity_log_service import ActivityLogService
from src.services.order_service import OrderService
from src.services.payment_settlement_service import PaymentSettlementService

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PENDING, OrderStatus.CANCELLED, OrderStatus.RETURN_PROCESSING}
    ),
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.RETURN_PROCESSING}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.RETURN_PROCESSING}
    ),
    OrderStatus.SHIPPED: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURN_PROCESSING}
    ),
    OrderStatus.RETURN_PROCESSING: frozenset({OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def is_transition_allowed(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    """Check whether the graph has an edge from current to target."""
    try:
        return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]
    except (KeyError, ValueError):
        return False


class OrderStatusService:
    """Validates and applies order status transitions.

    Writes to one order are serialized by an in-process lock per order id
    and a compare-and-set on (status, updated_at), so a concurrent writer in
    another process loses cleanly instead of overwriting.
    """

    def __init__(self) -> None:
        """Initialize the state machine with its collaborators."""
        self.orders = OrderService()
        self.activity_log = ActivityLogService()
        self.settlement = PaymentSettlementService()
        self.locks = get_order_locks()

    async def apply_status(
        self,
        order_id: UUID | str,
        new_status: OrderStatus | str,
        tracking_number: str | None = None,
        actor: UserContext | None = None,
    ) -> StatusTransitionResult:
        """Move an order to a new status and/or record a tracking number.

        Args:
            order_id: The order's UUID.
            new_status: Requested status.
            tracking_number: Carrier tracking number, if provided.
            actor: Staff member making the change (None for system changes).

        Returns:
            StatusTransitionResult: The updated order, or a failure code.
        """
        new_status = OrderStatus(new_status)
        actor_id = str(actor.user_id) if actor else SYSTEM_ACTOR
        actor_name = actor.display_name if actor else SYSTEM_ACTOR

        async with self.locks.hold(str(order_id)):
            try:
                order = await self.orders.get_order(order_id)
            except Exception as e:
                logger.error("Failed to load order %s: %s", order_id, str(e))
                return StatusTransitionResult.failed(
                    FailureCode.UPSTREAM_UNAVAILABLE, "Order store is unavailable. Please try again."
                )

            if not order:
                return StatusTransitionResult.failed(FailureCode.ORDER_NOT_FOUND, "Order not found")

            current = OrderStatus(order["status"])
            tracking_changed = tracking_number is not None and tracking_number != order.get("tracking_number")

            if new_status == current and not tracking_changed:
                return StatusTransitionResult.failed(
                    FailureCode.NO_CHANGES, "Order status and tracking number are unchanged"
                )

            if new_status != current and not is_transition_allowed(current, new_status):
                logger.info(
                    "Rejected transition %s -> %s for order %s by %s",
                    current.value,
                    new_status.value,
                    order_id,
                    actor_id,
                )
                return StatusTransitionResult.failed(
                    FailureCode.INVALID_TRANSITION,
                    f'Cannot change order status from "{current.value}" to "{new_status.value}"',
                )

            update = self._build_update(order, current, new_status, tracking_number if tracking_changed else None)

            try:
                updated = await self.orders.compare_and_set(
                    order_id,
                    expected_status=current.value,
                    expected_updated_at=order.get("updated_at"),
                    data=update,
                )
            except Exception as e:
                logger.error("Failed to update order %s: %s", order_id, str(e))
                return StatusTransitionResult.failed(
                    FailureCode.UPSTREAM_UNAVAILABLE, "Order store is unavailable. Please try again."
                )

            if updated is None:
                logger.warning("Order %s changed while updating to %s", order_id, new_status.value)
                return StatusTransitionResult.failed(
                    FailureCode.CONCURRENT_MODIFICATION,
                    "Order was modified by someone else. Reload it and try again.",
                )

            try:
                await self.activity_log.record_status_change(
                    order_id,
                    previous_status=current.value,
                    new_status=new_status.value,
                    tracking_number=updated.get("tracking_number"),
                    actor_id=actor_id,
                    actor_name=actor_name,
                )
            except Exception as e:
                logger.error("Failed to write activity log for order %s, reverting: %s", order_id, str(e))
                await self._restore(order)
                return StatusTransitionResult.failed(
                    FailureCode.UPSTREAM_UNAVAILABLE,
                    "Could not record the status change. The order was left unchanged.",
                )

            if new_status != current:
                logger.info(
                    "Order %s status %s -> %s by %s",
                    order_id,
                    current.value,
                    new_status.value,
                    actor_id,
                )
                updated = await self._settle(updated, new_status)
                message = f'Order status updated to "{new_status.value}"'
            else:
                logger.info("Order %s tracking number updated by %s", order_id, actor_id)
                message = "Tracking number updated"

            return StatusTransitionResult.applied(OrderResponse.model_validate(updated), message)

    @staticmethod
    def _build_update(
        order: dict[str, Any],
        current: OrderStatus,
        new_status: OrderStatus,
        tracking_number: str | None,
    ) -> OrderUpdate:
        now = utc_now().isoformat()
        update = OrderUpdate(updated_at=now)

        if new_status != current:
            update["status"] = new_status.value
            # Dates record the first arrival only
            if new_status == OrderStatus.SHIPPED and not order.get("shipped_date"):
                update["shipped_date"] = now
            if new_status == OrderStatus.DELIVERED and not order.get("delivered_date"):
                update["delivered_date"] = now

        if tracking_number is not None:
            update["tracking_number"] = tracking_number

        return update

    async def _restore(self, order: dict[str, Any]) -> None:
        """Put an order row back to the values it had before an update."""
        previous = OrderUpdate(
            status=order["status"],
            tracking_number=order.get("tracking_number"),
            shipped_date=order.get("shipped_date"),
            delivered_date=order.get("delivered_date"),
            updated_at=order.get("updated_at"),
        )
        try:
            await self.orders.update_order(order["id"], previous)
        except Exception:
            logger.exception("Failed to restore order %s after activity log failure", order["id"])

    async def _settle(self, order: dict[str, Any], new_status: OrderStatus) -> dict[str, Any]:
        changes = await self.settlement.settle(order, new_status.value)
        if not changes:
            return order

        try:
            updated = await self.orders.update_order(
                order["id"], OrderUpdate(**changes, updated_at=utc_now().isoformat())
            )
        except Exception:
            logger.exception("Failed to record settlement on order %s", order["id"])
            return order
        return updated or order
