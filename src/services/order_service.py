"""Order store business logic service."""

import logging
from typing import Any
from uuid import UUID

from src.core.supabase import get_supabase_client
from src.models.order import OrderCreate, OrderUpdate
from src.schemas.auth import UserContext

logger = logging.getLogger(__name__)


class OrderService:
    """Service for reading and writing order rows."""

    def __init__(self) -> None:
        """Initialize order service with Supabase client."""
        self.client = get_supabase_client()

    async def get_order(self, order_id: UUID | str) -> dict[str, Any] | None:
        """Get an order by ID.

        Args:
            order_id: The order's UUID.

        Returns:
            dict | None: The order data or None if not found.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def get_orders_by_payment_intent(
        self,
        payment_intent_id: str,
        user_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """Get the orders created by a payment intent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID.
            user_id: Restrict to orders owned by this user when given.

        Returns:
            list[dict]: Matching orders, oldest first.
        """
        query = (
            self.client.table("orders")
            .select("*")
            .eq("payment_intent_id", payment_intent_id)
        )
        if user_id:
            query = query.eq("user_id", str(user_id))

        response = query.order("created_at").execute()
        return response.data or []

    async def get_orders_by_checkout_session(self, session_id: str) -> list[dict[str, Any]]:
        """Get the orders created by a Stripe Checkout Session.

        Args:
            session_id: Stripe Checkout Session ID.

        Returns:
            list[dict]: Matching orders, oldest first.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("stripe_session_id", session_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

    async def get_pending_payment_orders(self, payment_intent_id: str) -> list[dict[str, Any]]:
        """Get orders for a payment intent that are still awaiting payment."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq("payment_intent_id", payment_intent_id)
            .eq("status", "pending_payment")
            .execute()
        )
        return response.data or []

    async def list_orders(
        self,
        status: str | None = None,
        store_id: str | None = None,
        user_id: UUID | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """List orders newest first, with optional filters.

        Args:
            status: Only orders in this status.
            store_id: Only orders for this store.
            user_id: Only orders owned by this user.
            limit: Page size.
            offset: Number of orders to skip.

        Returns:
            tuple: (orders on this page, total number of matching orders).
        """
        query = self.client.table("orders").select("*", count="exact")
        if status:
            query = query.eq("status", status)
        if store_id:
            query = query.eq("store_id", store_id)
        if user_id:
            query = query.eq("user_id", str(user_id))

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        orders = response.data or []
        total = response.count if response.count is not None else len(orders)
        return orders, total

    async def create_orders(self, rows: list[OrderCreate]) -> list[dict[str, Any]]:
        """Insert the orders for one checkout in a single statement.

        The rows are written together or not at all, so a checkout is never
        left with only some of its per-store orders.

        Args:
            rows: Order fields, one entry per store.

        Returns:
            list[dict]: The created orders, in input order.

        Raises:
            RuntimeError: If the database did not return every created row.
        """
        response = self.client.table("orders").insert([dict(row) for row in rows]).execute()
        created = response.data or []
        if len(created) != len(rows):
            raise RuntimeError(f"Order insert not confirmed ({len(created)} of {len(rows)} rows returned)")

        for order in created:
            logger.info(
                "Created order %s for store %s (total %s)",
                order["id"],
                order.get("store_id"),
                order.get("total_amount"),
            )
        return created

    async def compare_and_set(
        self,
        order_id: UUID | str,
        expected_status: str,
        expected_updated_at: str | None,
        data: OrderUpdate,
    ) -> dict[str, Any] | None:
        """Update an order only if it has not changed since it was read.

        Args:
            order_id: The order's UUID.
            expected_status: Status the row must still have.
            expected_updated_at: updated_at value the row must still have.
            data: Fields to write.

        Returns:
            dict | None: The updated row, or None if the row had moved on.
        """
        query = (
            self.client.table("orders")
            .update(dict(data))
            .eq("id", str(order_id))
            .eq("status", expected_status)
        )
        if expected_updated_at:
            query = query.eq("updated_at", expected_updated_at)
        else:
            query = query.is_("updated_at", "null")

        response = query.execute()
        return response.data[0] if response.data else None

    async def update_order(self, order_id: UUID | str, data: OrderUpdate) -> dict[str, Any] | None:
        """Unconditionally update an order.

        Args:
            order_id: The order's UUID.
            data: Fields to write.

        Returns:
            dict | None: The updated row, or None if the order does not exist.
        """
        response = (
            self.client.table("orders")
            .update(dict(data))
            .eq("id", str(order_id))
            .execute()
        )
        return response.data[0] if response.data else None

    async def can_access_order(self, order: dict[str, Any], user: UserContext) -> bool:
        """Check if a user can view an order.

        Args:
            order: The order row.
            user: The requesting user.

        Returns:
            bool: True if the user owns the order or is staff.
        """
        if user.is_staff:
            return True
        return order.get("user_id") == str(user.user_id)
