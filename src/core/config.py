"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="marketplace-orders", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Cookies
    auth_cookie_name: str = Field(default="auth_token", description="Cookie carrying the user's access token")
    cart_cookie_name: str = Field(default="cart_session", description="Cookie identifying the storefront cart")
    cart_cookie_max_age: int = Field(default=604800, description="Cart cookie max age in seconds (7 days)")
    cookie_secure: bool = Field(default=True, description="Use secure cookies (HTTPS only)")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    stripe_max_network_retries: int = Field(default=2, description="Retries for failed Stripe API requests")

    # Storefront upstream
    marketplace_api_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the marketplace API consumed by the storefront components",
    )
    upstream_timeout_seconds: float = Field(default=10.0, description="Timeout for storefront upstream calls")

    # Tax and pricing
    tax_api_url: str = Field(
        default="https://api.api-ninjas.com/v1/salestax",
        description="Sales tax lookup endpoint keyed by postal code",
    )
    tax_api_key: str = Field(default="", description="Sales tax API key (fallback table used when empty)")
    tax_api_timeout_seconds: float = Field(default=5.0, description="Sales tax API timeout")
    default_tax_rate: Decimal = Field(default=Decimal("0.08"), description="Tax rate for unknown jurisdictions")
    free_shipping_threshold: Decimal = Field(default=Decimal("50.00"), description="Subtotal at which shipping is free")
    flat_shipping_fee: Decimal = Field(default=Decimal("5.99"), description="Shipping fee below the threshold")
    pricing_debounce_seconds: float = Field(default=0.3, description="Quiet period before a pricing refresh runs")

    # Reservations
    reservation_recheck_interval_seconds: float = Field(
        default=60.0,
        description="Interval for the periodic reservation conflict sweep (0 disables it)",
    )

    # Orders
    order_page_size_max: int = Field(default=100, description="Maximum page size for order listings")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
