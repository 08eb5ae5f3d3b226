"""Unit tests for wire schemas and payment method parsing."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.schemas.order import OrderResponse, OrderStatusUpdate, ReservationLine
from src.schemas.payment import LocalTransaction, ProviderTransaction, parse_payment_method
from src.schemas.reservation import SlotCheckRequest


class TestParsePaymentMethod:
    """Tests for parse_payment_method function."""

    def test_checkout_session(self) -> None:
        """Test checkout session descriptors."""
        payment = parse_payment_method("stripe_checkout:cs_test_123")

        assert isinstance(payment, ProviderTransaction)
        assert payment.flow == "checkout_session"
        assert payment.reference == "cs_test_123"

    def test_payment_intent(self) -> None:
        """Test payment intent descriptors."""
        payment = parse_payment_method("stripe_payment_intent:pi_123")

        assert isinstance(payment, ProviderTransaction)
        assert payment.flow == "payment_intent"

    @pytest.mark.parametrize("descriptor", ["cash", "", None, "stripe_checkout:"])
    def test_local(self, descriptor: str | None) -> None:
        """Test that anything else is a local payment."""
        assert isinstance(parse_payment_method(descriptor), LocalTransaction)


class TestReservationLine:
    """Tests for reservation field rules."""

    def test_reservation_requires_date_and_time(self) -> None:
        """Test that reservation lines must name their slot."""
        with pytest.raises(ValidationError):
            ReservationLine(
                product_id="p1",
                product_name="Consultation",
                quantity=1,
                price=Decimal("30"),
                is_reservation=True,
                reservation_date="2026-03-01",
            )

    def test_plain_line_rejects_reservation_fields(self) -> None:
        """Test that reservation fields are only allowed on reservations."""
        with pytest.raises(ValidationError):
            ReservationLine(
                product_id="p1",
                product_name="Fig",
                quantity=1,
                price=Decimal("21"),
                reservation_time="10:00",
            )

    def test_trims_seconds_and_computes_subtotal(self) -> None:
        """Test HH:MM:SS normalization and the subtotal field."""
        line = ReservationLine(
            product_id="p1",
            product_name="Consultation",
            quantity=2,
            price=Decimal("30.00"),
            is_reservation=True,
            reservation_date="2026-03-01",
            reservation_time="10:00:00",
        )

        assert line.reservation_time == "10:00"
        assert line.subtotal == Decimal("60.00")
        assert line.reservation_slot == ("p1", "2026-03-01", "10:00")


class TestOrderResponse:
    """Tests for OrderResponse."""

    def test_serializes_camel_case(self, sample_order: dict) -> None:
        """Test camelCase keys and numeric money on the wire."""
        data = OrderResponse.model_validate(sample_order).model_dump(mode="json", by_alias=True)

        assert data["totalAmount"] == 42.0
        assert data["paymentIntentId"] == "pi_test_123"
        assert data["payment"] == {
            "kind": "provider",
            "provider": "stripe",
            "flow": "checkout_session",
            "reference": "cs_test_123",
        }

    def test_refund_cannot_exceed_total(self, sample_order: dict) -> None:
        """Test the refund bound."""
        with pytest.raises(ValidationError):
            OrderResponse.model_validate({**sample_order, "total_refunded": 50})

    def test_null_refund_defaults_to_zero(self, sample_order: dict) -> None:
        """Test that a NULL total_refunded column reads as zero."""
        order = OrderResponse.model_validate({**sample_order, "total_refunded": None})

        assert order.total_refunded == Decimal("0")


class TestRequests:
    """Tests for request schemas."""

    def test_blank_tracking_number_is_none(self) -> None:
        """Test that blank tracking numbers are treated as absent."""
        update = OrderStatusUpdate.model_validate({"status": "shipped", "trackingNumber": "  "})

        assert update.tracking_number is None

    @pytest.mark.parametrize("key", ["time", "timeSlot", "time_slot"])
    def test_slot_check_time_aliases(self, key: str) -> None:
        """Test that the slot time is accepted under each key."""
        request = SlotCheckRequest.model_validate({"productId": "p1", "date": "2026-03-01", key: "10:00"})

        assert request.time == "10:00"
