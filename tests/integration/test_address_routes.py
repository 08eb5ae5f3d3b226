"""Integration tests for saved address endpoints."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

TEST_USER_ID = "550e8400-e29b-41d4-a716-446655440000"
ADDRESS_ID = "bb0e8400-e29b-41d4-a716-446655440000"


def _address(**overrides) -> dict:
    address = {
        "id": ADDRESS_ID,
        "user_id": TEST_USER_ID,
        "full_name": "Test User",
        "street_address": "1 Main St",
        "apt_number": None,
        "city": "New York",
        "state_province": "NY",
        "zip_code": "10001",
        "country": "US",
        "is_default": True,
        "created_at": "2026-01-05T10:00:00+00:00",
    }
    address.update(overrides)
    return address


class TestAddresses:
    """Tests for /api/addresses endpoints."""

    @patch("src.services.address_service.get_supabase_client")
    def test_list_addresses(self, mock_supabase: MagicMock, client: TestClient, auth_headers: dict) -> None:
        """Test that saved addresses are listed."""
        response_mock = MagicMock()
        response_mock.data = [_address()]
        mock_supabase.return_value.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value.execute.return_value = (
            response_mock
        )

        response = client.get("/api/addresses", headers=auth_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert items[0]["zipCode"] == "10001"
        assert items[0]["isDefault"] is True

    @patch("src.services.address_service.get_supabase_client")
    def test_create_address(self, mock_supabase: MagicMock, client: TestClient, auth_headers: dict) -> None:
        """Test that a new address is saved and returned."""
        list_response = MagicMock()
        list_response.data = []
        mock_supabase.return_value.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value.execute.return_value = (
            list_response
        )
        insert_response = MagicMock()
        insert_response.data = [_address()]
        mock_supabase.return_value.table.return_value.insert.return_value.execute.return_value = insert_response

        response = client.post(
            "/api/addresses",
            json={
                "fullName": "Test User",
                "streetAddress": "1 Main St",
                "city": "New York",
                "stateProvince": "NY",
                "zipCode": "10001",
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == ADDRESS_ID

    @patch("src.services.address_service.get_supabase_client")
    def test_set_default_not_found(self, mock_supabase: MagicMock, client: TestClient, auth_headers: dict) -> None:
        """Test that unknown addresses return 404."""
        mock_supabase.return_value.table.return_value.select.return_value.eq.return_value.eq.return_value.maybe_single.return_value.execute.return_value = (
            None
        )

        response = client.put(f"/api/addresses/{ADDRESS_ID}/default", headers=auth_headers)

        assert response.status_code == 404

    @patch("src.services.address_service.get_supabase_client")
    def test_delete_address(self, mock_supabase: MagicMock, client: TestClient, auth_headers: dict) -> None:
        """Test that an owned address is deleted."""
        delete_response = MagicMock()
        delete_response.data = [_address()]
        mock_supabase.return_value.table.return_value.delete.return_value.eq.return_value.eq.return_value.execute.return_value = (
            delete_response
        )

        response = client.delete(f"/api/addresses/{ADDRESS_ID}", headers=auth_headers)

        assert response.status_code == 204

    def test_requires_authentication(self, client: TestClient) -> None:
        """Test that anonymous callers are rejected."""
        response = client.get("/api/addresses")

        assert response.status_code == 401
