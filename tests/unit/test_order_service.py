"""Unit tests for OrderService, ActivityLogService and AddressService."""

from unittest.mock import MagicMock, patch

import pytest

from src.schemas.address import ShippingAddressCreate
from src.schemas.auth import UserContext
from src.services.activity_log_service import (
    ORDER_STATUS_UPDATED,
    ORDER_TRACKING_UPDATED,
    ActivityLogService,
)
from src.services.address_service import AddressService
from src.services.order_service import OrderService

USER_ID = "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client."""
    return MagicMock()


@pytest.fixture
def order_service(mock_supabase: MagicMock) -> OrderService:
    """Create OrderService with mocked dependencies."""
    with patch("src.services.order_service.get_supabase_client", return_value=mock_supabase):
        return OrderService()


@pytest.fixture
def activity_log_service(mock_supabase: MagicMock) -> ActivityLogService:
    """Create ActivityLogService with mocked dependencies."""
    with patch("src.services.activity_log_service.get_supabase_client", return_value=mock_supabase):
        return ActivityLogService()


@pytest.fixture
def address_service(mock_supabase: MagicMock) -> AddressService:
    """Create AddressService with mocked dependencies."""
    with patch("src.services.address_service.get_supabase_client", return_value=mock_supabase):
        return AddressService()


def _response(data, count=None) -> MagicMock:
    response = MagicMock()
    response.data = data
    response.count = count
    return response


class TestOrderService:
    """Tests for OrderService."""

    @pytest.mark.asyncio
    async def test_compare_and_set_matches_status_and_timestamp(
        self, order_service: OrderService, mock_supabase: MagicMock, sample_order: dict
    ) -> None:
        """Test that the update is conditioned on the values that were read."""
        query = mock_supabase.table.return_value.update.return_value.eq.return_value.eq.return_value
        query.eq.return_value.execute.return_value = _response([{**sample_order, "status": "processing"}])

        updated = await order_service.compare_and_set(
            sample_order["id"], "pending", sample_order["updated_at"], {"status": "processing"}
        )

        assert updated["status"] == "processing"
        mock_supabase.table.return_value.update.return_value.eq.return_value.eq.assert_called_once_with(
            "status", "pending"
        )
        query.eq.assert_called_once_with("updated_at", sample_order["updated_at"])

    @pytest.mark.asyncio
    async def test_compare_and_set_lost_race(
        self, order_service: OrderService, mock_supabase: MagicMock, sample_order: dict
    ) -> None:
        """Test that no matching row means someone else changed the order."""
        query = mock_supabase.table.return_value.update.return_value.eq.return_value.eq.return_value
        query.eq.return_value.execute.return_value = _response([])

        assert await order_service.compare_and_set(
            sample_order["id"], "pending", sample_order["updated_at"], {"status": "processing"}
        ) is None

    @pytest.mark.asyncio
    async def test_compare_and_set_without_timestamp(
        self, order_service: OrderService, mock_supabase: MagicMock, sample_order: dict
    ) -> None:
        """Test that rows never updated are matched on a NULL updated_at."""
        query = mock_supabase.table.return_value.update.return_value.eq.return_value.eq.return_value
        query.is_.return_value.execute.return_value = _response([sample_order])

        await order_service.compare_and_set(sample_order["id"], "pending", None, {"status": "processing"})

        query.is_.assert_called_once_with("updated_at", "null")

    @pytest.mark.asyncio
    async def test_list_orders_returns_total(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        """Test that listings report the exact total."""
        query = mock_supabase.table.return_value.select.return_value
        query.eq.return_value.order.return_value.range.return_value.execute.return_value = _response(
            [{"id": "o1"}], count=12
        )

        orders, total = await order_service.list_orders(status="pending", limit=1, offset=5)

        assert total == 12
        assert orders == [{"id": "o1"}]
        query.eq.return_value.order.return_value.range.assert_called_once_with(5, 5)

    @pytest.mark.asyncio
    async def test_create_orders_single_insert(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        """Test that all of a checkout's orders go out in one insert."""
        insert = mock_supabase.table.return_value.insert
        insert.return_value.execute.return_value = _response(
            [{"id": "o1", "store_id": "store-1"}, {"id": "o2", "store_id": "store-2"}]
        )

        orders = await order_service.create_orders([{"store_id": "store-1"}, {"store_id": "store-2"}])

        assert [order["id"] for order in orders] == ["o1", "o2"]
        insert.assert_called_once_with([{"store_id": "store-1"}, {"store_id": "store-2"}])

    @pytest.mark.asyncio
    async def test_create_orders_requires_confirmation(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        """Test that an insert returning fewer rows than sent raises."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = _response(
            [{"id": "o1", "store_id": "store-1"}]
        )

        with pytest.raises(RuntimeError):
            await order_service.create_orders([{"store_id": "store-1"}, {"store_id": "store-2"}])

    @pytest.mark.asyncio
    async def test_can_access_order(self, order_service: OrderService, sample_order: dict) -> None:
        """Test that owners and staff can view an order."""
        owner = UserContext(user_id=USER_ID)
        stranger = UserContext(user_id="880e8400-e29b-41d4-a716-446655440000")
        staff = UserContext(user_id="880e8400-e29b-41d4-a716-446655440000", role="staff")

        assert await order_service.can_access_order(sample_order, owner) is True
        assert await order_service.can_access_order(sample_order, stranger) is False
        assert await order_service.can_access_order(sample_order, staff) is True


class TestActivityLogService:
    """Tests for ActivityLogService."""

    @pytest.mark.asyncio
    async def test_status_change_entry(
        self, activity_log_service: ActivityLogService, mock_supabase: MagicMock
    ) -> None:
        """Test the entry written for a status change."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = _response([{"id": "log-1"}])

        await activity_log_service.record_status_change(
            "order-1", "processing", "shipped", "1Z999", "admin-1", "admin@example.com"
        )

        entry = mock_supabase.table.return_value.insert.call_args.args[0]
        assert entry["type"] == ORDER_STATUS_UPDATED
        assert entry["order_id"] == "order-1"
        assert entry["metadata"] == {
            "previous_status": "processing",
            "new_status": "shipped",
            "tracking_number": "1Z999",
        }

    @pytest.mark.asyncio
    async def test_tracking_entry(self, activity_log_service: ActivityLogService, mock_supabase: MagicMock) -> None:
        """Test that tracking-only changes get their own entry type."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = _response([{"id": "log-1"}])

        await activity_log_service.record_status_change("order-1", "shipped", "shipped", "1Z999", "system", "system")

        entry = mock_supabase.table.return_value.insert.call_args.args[0]
        assert entry["type"] == ORDER_TRACKING_UPDATED

    @pytest.mark.asyncio
    async def test_unconfirmed_insert_raises(
        self, activity_log_service: ActivityLogService, mock_supabase: MagicMock
    ) -> None:
        """Test that a lost audit entry is an error."""
        mock_supabase.table.return_value.insert.return_value.execute.return_value = _response([])

        with pytest.raises(RuntimeError):
            await activity_log_service.record_status_change("order-1", "pending", "processing", None, "system", None)


class TestAddressService:
    """Tests for AddressService."""

    @pytest.mark.asyncio
    async def test_first_address_becomes_default(
        self, address_service: AddressService, mock_supabase: MagicMock
    ) -> None:
        """Test that a user's first address is made the default."""
        with patch.object(address_service, "list_addresses", return_value=[]):
            mock_supabase.table.return_value.insert.return_value.execute.return_value = _response(
                [{"id": "addr-1", "is_default": True}]
            )

            await address_service.create_address(
                USER_ID,
                ShippingAddressCreate(
                    street_address="1 Main St", city="New York", state_province="NY", zip_code="10001"
                ),
            )

        row = mock_supabase.table.return_value.insert.call_args.args[0]
        assert row["is_default"] is True
        assert row["user_id"] == USER_ID
