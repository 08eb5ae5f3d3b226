"""Unit tests for the order status state machine."""

from unittest.mock import AsyncMock, patch

import pytest

from src.core.locks import KeyedLocks
from src.schemas.auth import UserContext
from src.schemas.common import FailureCode
from src.schemas.order import OrderStatus
from src.services.order_status_service import (
    TERMINAL_STATUSES,
    OrderStatusService,
    is_transition_allowed,
)

STAFF = UserContext(
    user_id="990e8400-e29b-41d4-a716-446655440000",
    email="admin@example.com",
    role="admin",
)


@pytest.fixture
def status_service() -> OrderStatusService:
    """Create OrderStatusService with mocked collaborators."""
    with patch("src.services.order_status_service.OrderService"), \
         patch("src.services.order_status_service.ActivityLogService"), \
         patch("src.services.order_status_service.PaymentSettlementService"):
        service = OrderStatusService()

    service.orders = AsyncMock()
    service.activity_log = AsyncMock()
    service.settlement = AsyncMock()
    service.settlement.settle.return_value = None
    service.locks = KeyedLocks("test-order")
    return service


def _with(order: dict, **changes) -> dict:
    return {**order, **changes}


class TestTransitionGraph:
    """Tests for the allowed transition table."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("pending_payment", "pending"),
            ("pending", "processing"),
            ("processing", "shipped"),
            ("shipped", "delivered"),
            ("pending", "cancelled"),
            ("shipped", "return_processing"),
            ("return_processing", "returned"),
        ],
    )
    def test_allowed_edges(self, current: str, target: str) -> None:
        """Test that forward edges are allowed."""
        assert is_transition_allowed(current, target) is True

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("delivered", "processing"),
            ("cancelled", "pending"),
            ("returned", "shipped"),
            ("pending", "delivered"),
            ("processing", "pending"),
            ("return_processing", "cancelled"),
        ],
    )
    def test_rejected_edges(self, current: str, target: str) -> None:
        """Test that backward and skipping edges are rejected."""
        assert is_transition_allowed(current, target) is False

    def test_unknown_status_is_rejected(self) -> None:
        """Test that unknown statuses never match an edge."""
        assert is_transition_allowed("archived", "pending") is False

    def test_terminal_statuses(self) -> None:
        """Test that delivered, cancelled and returned have no outgoing edges."""
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED}


class TestApplyStatus:
    """Tests for apply_status method."""

    @pytest.mark.asyncio
    async def test_applies_allowed_transition(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that an allowed change is written and audited."""
        status_service.orders.get_order.return_value = sample_order
        status_service.orders.compare_and_set.return_value = _with(sample_order, status="processing")

        result = await status_service.apply_status(sample_order["id"], "processing", actor=STAFF)

        assert result.success is True
        assert result.order.status == OrderStatus.PROCESSING
        assert result.message == 'Order status updated to "processing"'

        call = status_service.orders.compare_and_set.await_args
        assert call.kwargs["expected_status"] == "pending"
        assert call.kwargs["expected_updated_at"] == sample_order["updated_at"]
        assert call.kwargs["data"]["status"] == "processing"

        log_call = status_service.activity_log.record_status_change.await_args
        assert log_call.kwargs["previous_status"] == "pending"
        assert log_call.kwargs["new_status"] == "processing"
        assert log_call.kwargs["actor_id"] == str(STAFF.user_id)
        assert log_call.kwargs["actor_name"] == "admin@example.com"

    @pytest.mark.asyncio
    async def test_system_actor_when_no_user(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that webhook-driven changes are attributed to the system."""
        order = _with(sample_order, status="pending_payment")
        status_service.orders.get_order.return_value = order
        status_service.orders.compare_and_set.return_value = _with(order, status="pending")

        result = await status_service.apply_status(order["id"], OrderStatus.PENDING)

        assert result.success is True
        log_call = status_service.activity_log.record_status_change.await_args
        assert log_call.kwargs["actor_id"] == "system"

    @pytest.mark.asyncio
    async def test_rejects_illegal_transition(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that a delivered order cannot go back to processing."""
        status_service.orders.get_order.return_value = _with(sample_order, status="delivered")

        result = await status_service.apply_status(sample_order["id"], "processing", actor=STAFF)

        assert result.success is False
        assert result.error == FailureCode.INVALID_TRANSITION
        assert result.message == 'Cannot change order status from "delivered" to "processing"'
        status_service.orders.compare_and_set.assert_not_awaited()
        status_service.activity_log.record_status_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_changes(self, status_service: OrderStatusService, sample_order: dict) -> None:
        """Test that the same status without a tracking number is a no-op."""
        status_service.orders.get_order.return_value = sample_order

        result = await status_service.apply_status(sample_order["id"], "pending", actor=STAFF)

        assert result.success is False
        assert result.error == FailureCode.NO_CHANGES
        status_service.orders.compare_and_set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_tracking_number_is_no_change(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that re-sending the stored tracking number changes nothing."""
        order = _with(sample_order, status="shipped", tracking_number="1Z999")
        status_service.orders.get_order.return_value = order

        result = await status_service.apply_status(order["id"], "shipped", tracking_number="1Z999")

        assert result.error == FailureCode.NO_CHANGES

    @pytest.mark.asyncio
    async def test_tracking_only_update(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that a new tracking number is recorded without a status change."""
        order = _with(sample_order, status="shipped", shipped_date="2026-01-06T10:00:00+00:00")
        status_service.orders.get_order.return_value = order
        status_service.orders.compare_and_set.return_value = _with(order, tracking_number="1Z999")

        result = await status_service.apply_status(order["id"], "shipped", tracking_number="1Z999", actor=STAFF)

        assert result.success is True
        assert result.message == "Tracking number updated"
        data = status_service.orders.compare_and_set.await_args.kwargs["data"]
        assert data["tracking_number"] == "1Z999"
        assert "status" not in data
        status_service.settlement.settle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_order_not_found(self, status_service: OrderStatusService) -> None:
        """Test that a missing order is reported."""
        status_service.orders.get_order.return_value = None

        result = await status_service.apply_status("missing", "processing", actor=STAFF)

        assert result.error == FailureCode.ORDER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_store_unavailable_on_read(self, status_service: OrderStatusService) -> None:
        """Test that a failed read is reported as upstream unavailable."""
        status_service.orders.get_order.side_effect = Exception("connection refused")

        result = await status_service.apply_status("order-1", "processing", actor=STAFF)

        assert result.error == FailureCode.UPSTREAM_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_concurrent_modification(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that a lost compare-and-set is reported and nothing is audited."""
        status_service.orders.get_order.return_value = sample_order
        status_service.orders.compare_and_set.return_value = None

        result = await status_service.apply_status(sample_order["id"], "processing", actor=STAFF)

        assert result.error == FailureCode.CONCURRENT_MODIFICATION
        status_service.activity_log.record_status_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audit_failure_restores_order(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that the order is put back when the audit entry cannot be written."""
        status_service.orders.get_order.return_value = sample_order
        status_service.orders.compare_and_set.return_value = _with(sample_order, status="processing")
        status_service.activity_log.record_status_change.side_effect = RuntimeError("insert failed")

        result = await status_service.apply_status(sample_order["id"], "processing", actor=STAFF)

        assert result.success is False
        assert result.error == FailureCode.UPSTREAM_UNAVAILABLE
        order_id, restored = status_service.orders.update_order.await_args.args
        assert order_id == sample_order["id"]
        assert restored["status"] == "pending"
        assert restored["updated_at"] == sample_order["updated_at"]
        status_service.settlement.settle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_records_refund(
        self, status_service: OrderStatusService, sample_order: dict
    ) -> None:
        """Test that settlement changes are persisted on the order."""
        cancelled = _with(sample_order, status="cancelled")
        status_service.orders.get_order.return_value = sample_order
        status_service.orders.compare_and_set.return_value = cancelled
        status_service.settlement.settle.return_value = {"total_refunded": 42.0}
        status_service.orders.update_order.return_value = _with(cancelled, total_refunded=42.0)

        result = await status_service.apply_status(sample_order["id"], "cancelled", actor=STAFF)

        assert result.success is True
        assert float(result.order.total_refunded) == 42.0
        status_service.settlement.settle.assert_awaited_once_with(cancelled, "cancelled")
        data = status_service.orders.update_order.await_args.args[1]
        assert data["total_refunded"] == 42.0


class TestBuildUpdate:
    """Tests for _build_update helper."""

    def test_sets_shipped_date_on_first_ship(self, sample_order: dict) -> None:
        """Test that shipped_date is stamped the first time."""
        update = OrderStatusService._build_update(
            _with(sample_order, status="processing"), OrderStatus.PROCESSING, OrderStatus.SHIPPED, None
        )

        assert update["status"] == "shipped"
        assert update["shipped_date"] == update["updated_at"]

    def test_keeps_existing_shipped_date(self, sample_order: dict) -> None:
        """Test that an existing shipped_date is never overwritten."""
        order = _with(sample_order, status="processing", shipped_date="2026-01-06T10:00:00+00:00")

        update = OrderStatusService._build_update(order, OrderStatus.PROCESSING, OrderStatus.SHIPPED, None)

        assert "shipped_date" not in update

    def test_sets_delivered_date(self, sample_order: dict) -> None:
        """Test that delivered_date is stamped on delivery."""
        update = OrderStatusService._build_update(
            _with(sample_order, status="shipped"), OrderStatus.SHIPPED, OrderStatus.DELIVERED, "1Z999"
        )

        assert update["delivered_date"] == update["updated_at"]
        assert update["tracking_number"] == "1Z999"
