"""Integration tests for reservation slot endpoints."""

from datetime import date, timedelta
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

PRODUCT_ID = "aa0e8400-e29b-41d4-a716-446655440000"


def _future_date() -> str:
    return (date.today() + timedelta(days=7)).isoformat()


def _booked(mock_supabase: MagicMock, reservation_date: str, times: list[str]) -> None:
    response = MagicMock()
    response.data = [
        {
            "id": f"order-{index}",
            "items": [
                {
                    "product_id": PRODUCT_ID,
                    "is_reservation": True,
                    "reservation_date": reservation_date,
                    "reservation_time": reservation_time,
                }
            ],
        }
        for index, reservation_time in enumerate(times)
    ]
    mock_supabase.return_value.table.return_value.select.return_value.contains.return_value.neq.return_value.execute.return_value = (
        response
    )


class TestCheckTimeSlot:
    """Tests for POST /api/reservations/check-time-slot endpoint."""

    @patch("src.services.reservation_service.get_supabase_client")
    def test_free_slot(self, mock_supabase: MagicMock, client: TestClient) -> None:
        """Test that an unbooked slot is available."""
        reservation_date = _future_date()
        _booked(mock_supabase, reservation_date, ["11:00:00"])

        response = client.post(
            "/api/reservations/check-time-slot",
            json={"productId": PRODUCT_ID, "date": reservation_date, "time": "10:00"},
        )

        assert response.status_code == 200
        assert response.json()["available"] is True

    @patch("src.services.reservation_service.get_supabase_client")
    def test_taken_slot(self, mock_supabase: MagicMock, client: TestClient) -> None:
        """Test that a booked slot is reported as taken."""
        reservation_date = _future_date()
        _booked(mock_supabase, reservation_date, ["10:00:00"])

        response = client.post(
            "/api/reservations/check-time-slot",
            json={"productId": PRODUCT_ID, "date": reservation_date, "timeSlot": "10:00"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["available"] is False
        assert "no longer available" in data["message"]

    @patch("src.services.reservation_service.get_supabase_client")
    def test_past_date_rejected(self, mock_supabase: MagicMock, client: TestClient) -> None:
        """Test that past dates are a validation error."""
        response = client.post(
            "/api/reservations/check-time-slot",
            json={"productId": PRODUCT_ID, "date": "2020-01-01", "time": "10:00"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_malformed_time_rejected(self, client: TestClient) -> None:
        """Test that times outside HH:MM fail request validation."""
        response = client.post(
            "/api/reservations/check-time-slot",
            json={"productId": PRODUCT_ID, "date": _future_date(), "time": "10am"},
        )

        assert response.status_code == 422


class TestAvailableTimeSlots:
    """Tests for GET /api/reservations/available-time-slots endpoint."""

    @patch("src.services.reservation_service.get_supabase_client")
    def test_lists_slots_with_availability(self, mock_supabase: MagicMock, client: TestClient) -> None:
        """Test that every slot is listed and booked ones are marked."""
        reservation_date = _future_date()
        _booked(mock_supabase, reservation_date, ["10:00:00"])

        response = client.get(
            f"/api/reservations/available-time-slots?productId={PRODUCT_ID}&date={reservation_date}"
        )

        assert response.status_code == 200
        slots = {slot["timeslot"]: slot["isAvailable"] for slot in response.json()["timeSlots"]}
        assert slots["10:00"] is False
        assert slots["11:00"] is True
