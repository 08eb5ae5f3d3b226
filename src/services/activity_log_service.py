"""Activity log (audit trail) service."""

import logging
from typing import Any
from uuid import UUID

from src.core.supabase import get_supabase_client
from src.models.activity_log import ActivityLogCreate

logger = logging.getLogger(__name__)

ORDER_STATUS_UPDATED = "order_status_updated"
ORDER_TRACKING_UPDATED = "order_tracking_updated"


class ActivityLogService:
    """Service for appending and reading audit entries."""

    def __init__(self) -> None:
        """Initialize activity log service with Supabase client."""
        self.client = get_supabase_client()

    async def record(self, entry: ActivityLogCreate) -> dict[str, Any]:
        """Append an entry to the activity log.

        Args:
            entry: The entry to persist.

        Returns:
            dict: The stored row.

        Raises:
            RuntimeError: If the database did not confirm the insert.
        """
        response = self.client.table("activity_logs").insert(dict(entry)).execute()
        if not response.data:
            raise RuntimeError(f"Activity log insert not confirmed for {entry.get('type')}")
        return response.data[0]

    async def record_status_change(
        self,
        order_id: UUID | str,
        previous_status: str,
        new_status: str,
        tracking_number: str | None,
        actor_id: str | None,
        actor_name: str | None,
    ) -> dict[str, Any]:
        """Record a status or tracking change on an order.

        Args:
            order_id: The order's UUID.
            previous_status: Status before the change.
            new_status: Status after the change.
            tracking_number: Tracking number after the change.
            actor_id: Who made the change ("system" for webhooks).
            actor_name: Display name of the actor.

        Returns:
            dict: The stored row.
        """
        if previous_status == new_status:
            entry_type = ORDER_TRACKING_UPDATED
            message = f"Order {order_id} tracking number updated by {actor_name or 'system'}"
        else:
            entry_type = ORDER_STATUS_UPDATED
            message = f'Order {order_id} status updated to "{new_status}" by {actor_name or "system"}'

        return await self.record(
            ActivityLogCreate(
                type=entry_type,
                message=message,
                actor_id=actor_id,
                actor_name=actor_name,
                order_id=str(order_id),
                metadata={
                    "previous_status": previous_status,
                    "new_status": new_status,
                    "tracking_number": tracking_number,
                },
            )
        )

    async def list_for_order(self, order_id: UUID | str) -> list[dict[str, Any]]:
        """Get the audit trail for an order, oldest first."""
        response = (
            self.client.table("activity_logs")
            .select("*")
            .eq("order_id", str(order_id))
            .order("created_at")
            .execute()
        )
        return response.data or []
