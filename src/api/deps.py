"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, Response, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt, extract_bearer_token
from src.api.middleware.error_handler import AuthorizationError
from src.core.config import get_settings
from src.schemas.auth import UserContext
from src.storefront.client import MarketplaceApiClient
from src.storefront.session import CartRegistry, CartStore, StorefrontSession


def get_cart_cookie_config() -> dict:
    """Get cart cookie configuration from settings."""
    settings = get_settings()
    # SameSite=None requires Secure=True, so fall back to Lax for local development
    samesite = "none" if settings.cookie_secure else "lax"
    return {
        "key": settings.cart_cookie_name,
        "max_age": settings.cart_cookie_max_age,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": samesite,
        "path": "/",
    }


def _get_token(request: Request, authorization: str | None) -> str | None:
    """Get the access token from the Authorization header or the auth cookie."""
    token = extract_bearer_token(authorization)
    if token:
        return token
    return request.cookies.get(get_settings().auth_cookie_name)


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header(description="Bearer token")] = None,
) -> UserContext:
    """Extract and validate the current user.

    The token is read from the Authorization header, falling back to the
    auth cookie forwarded by the storefront.

    Args:
        request: FastAPI request object.
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    token = _get_token(request, authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        # Map auth errors to appropriate HTTP responses
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def require_staff(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
    """Require an admin, store owner or staff role.

    Raises:
        AuthorizationError: 403 if the user is not staff.
    """
    if not user.is_staff:
        raise AuthorizationError("Staff access required")
    return user


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
StaffUser = Annotated[UserContext, Depends(require_staff)]


# Storefront dependencies


def get_cart_registry(request: Request) -> CartRegistry:
    """Get the process-wide cart registry from application state."""
    registry = getattr(request.app.state, "cart_registry", None)
    if registry is None:
        registry = CartRegistry()
        request.app.state.cart_registry = registry
    return registry


def get_marketplace_client(request: Request) -> MarketplaceApiClient:
    """Get the shared marketplace API client from application state."""
    client = getattr(request.app.state, "marketplace_client", None)
    if client is None:
        client = MarketplaceApiClient()
        request.app.state.marketplace_client = client
    return client


def get_storefront_session(request: Request) -> StorefrontSession:
    """Build the shopper session from the incoming cookies."""
    return StorefrontSession(
        cookies=dict(request.cookies),
        auth_cookie_name=get_settings().auth_cookie_name,
    )


def get_cart(
    request: Request,
    response: Response,
    registry: Annotated[CartRegistry, Depends(get_cart_registry)],
    session: Annotated[StorefrontSession, Depends(get_storefront_session)],
) -> CartStore:
    """Get the cart for the cart cookie, creating one if needed.

    Sets the cart cookie when a new cart is created.
    """
    config = get_cart_cookie_config()
    cart_id = request.cookies.get(config["key"])
    cart = registry.get_or_create(cart_id)
    cart.session = session

    if cart.cart_id != cart_id:
        set_cart_cookie(response, cart.cart_id)
    return cart


def set_cart_cookie(response: Response, cart_id: str) -> None:
    """Set cart cookie on response.

    Args:
        response: FastAPI response object.
        cart_id: The cart identifier to set.
    """
    config = get_cart_cookie_config()
    response.set_cookie(
        key=config["key"],
        value=cart_id,
        max_age=config["max_age"],
        httponly=config["httponly"],
        secure=config["secure"],
        samesite=config["samesite"],
        path=config["path"],
    )


MarketplaceClient = Annotated[MarketplaceApiClient, Depends(get_marketplace_client)]
ShopperSession = Annotated[StorefrontSession, Depends(get_storefront_session)]
Cart = Annotated[CartStore, Depends(get_cart)]
