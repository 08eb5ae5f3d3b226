"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from jwt.algorithms import ECAlgorithm

# Signing key for test tokens; its public half is the configured JWK
TEST_SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())

TEST_USER_ID = "550e8400-e29b-41d4-a716-446655440000"
TEST_STAFF_ID = "990e8400-e29b-41d4-a716-446655440000"
TEST_ORDER_ID = "660e8400-e29b-41d4-a716-446655440000"

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ["SUPABASE_SIGNING_KEY_JWK"] = ECAlgorithm.to_jwk(TEST_SIGNING_KEY.public_key())
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ["TAX_API_KEY"] = ""
os.environ["COOKIE_SECURE"] = "false"
os.environ["PRICING_DEBOUNCE_SECONDS"] = "0"
os.environ["RESERVATION_RECHECK_INTERVAL_SECONDS"] = "0"


def create_test_token(
    sub: str = TEST_USER_ID,
    email: str | None = "test@example.com",
    role: str | None = None,
    exp_offset: int = 3600,
) -> str:
    """Create an ES256 token signed with the test signing key.

    Args:
        sub: Subject (user ID).
        email: User email.
        role: Marketplace role, carried in app_metadata.
        exp_offset: Seconds from now for expiration (negative for expired).

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": sub,
        "email": email,
        "role": "authenticated",
        "exp": now + exp_offset,
        "iat": now,
        "aud": "authenticated",
        "iss": "https://test-project.supabase.co/auth/v1",
    }
    if role:
        payload["app_metadata"] = {"role": role}
    return jwt.encode(payload, TEST_SIGNING_KEY, algorithm="ES256")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Provide the token factory."""
    return create_test_token


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header for a regular shopper."""
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def staff_headers() -> dict[str, str]:
    """Authorization header for a store administrator."""
    token = create_test_token(sub=TEST_STAFF_ID, email="admin@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_order() -> dict:
    """An order row as stored in the orders table."""
    return {
        "id": TEST_ORDER_ID,
        "user_id": TEST_USER_ID,
        "store_id": "store-1",
        "store_name": "Green Thumb Nursery",
        "items": [
            {
                "product_id": "770e8400-e29b-41d4-a716-446655440000",
                "product_name": "Fiddle Leaf Fig",
                "product_image": None,
                "quantity": 2,
                "price": 21.0,
                "subtotal": 42.0,
                "is_reservation": False,
            }
        ],
        "total_amount": 42.0,
        "total_refunded": 0,
        "currency": "usd",
        "shipping_address": {
            "street_address": "1 Main St",
            "apt_number": None,
            "city": "New York",
            "state_province": "NY",
            "zip_code": "10001",
            "country": "US",
        },
        "payment_method": "stripe_checkout:cs_test_123",
        "status": "pending",
        "order_date": "2026-01-05T10:00:00+00:00",
        "shipped_date": None,
        "delivered_date": None,
        "tracking_number": None,
        "stripe_session_id": "cs_test_123",
        "payment_intent_id": "pi_test_123",
        "created_at": "2026-01-05T10:00:00+00:00",
        "updated_at": "2026-01-05T10:00:00+00:00",
    }


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
