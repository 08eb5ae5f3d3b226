"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import error_handler_middleware
from src.api.middleware.latency_logging import latency_logging_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import (
    addresses,
    admin_orders,
    health,
    orders,
    payments,
    reservations,
    storefront,
    tax,
    webhooks,
)
from src.core.config import get_settings
from src.core.scheduler import RecurringTask
from src.core.stripe import configure_stripe
from src.storefront.client import MarketplaceApiClient
from src.storefront.conflict_checker import ReservationConflictChecker, sweep_reservations
from src.storefront.pricing_coordinator import PricingCoordinator
from src.storefront.session import CartRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    # Configure Stripe SDK
    configure_stripe()
    logger.info("Stripe SDK configured")

    # Storefront state shared by all shopper sessions
    app.state.cart_registry = CartRegistry()
    app.state.marketplace_client = MarketplaceApiClient()

    # Periodic reservation re-check for carts holding reservation lines
    sweeper: RecurringTask | None = None
    if settings.reservation_recheck_interval_seconds > 0:
        checker = ReservationConflictChecker(app.state.marketplace_client)
        pricing = PricingCoordinator(app.state.marketplace_client)
        sweeper = RecurringTask(
            "reservation-sweep",
            lambda: sweep_reservations(
                app.state.cart_registry, checker, pricing, max_idle_seconds=settings.cart_cookie_max_age
            ),
            settings.reservation_recheck_interval_seconds,
        )
        await sweeper.start()

    yield
    # Shutdown
    if sweeper:
        await sweeper.stop()
    await app.state.marketplace_client.aclose()
    logger.info("Marketplace API client closed")
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Marketplace Orders API",
        description="Checkout completion, order lifecycle, reservations and pricing for the marketplace",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (outermost - catches all errors)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (tracks request timing)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    # Add request size limit middleware (rejects oversized requests early)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Storefront routes are served at /storefront
    app.include_router(storefront.router)

    # Marketplace API routes
    api_router = APIRouter(prefix="/api")

    api_router.include_router(orders.router)
    api_router.include_router(admin_orders.router)
    api_router.include_router(payments.router)
    api_router.include_router(reservations.router)
    api_router.include_router(tax.router)
    api_router.include_router(addresses.router)
    api_router.include_router(webhooks.router)

    app.include_router(api_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
