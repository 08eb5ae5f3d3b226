"""Saved shipping address routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.api.deps import CurrentUser
from src.schemas.address import (
    ShippingAddressCreate,
    ShippingAddressListResponse,
    ShippingAddressResponse,
)
from src.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


@router.get(
    "",
    response_model=ShippingAddressListResponse,
    summary="List my addresses",
    description="Returns the caller's saved shipping addresses, default first.",
)
async def list_addresses(user: CurrentUser) -> ShippingAddressListResponse:
    """List the current user's saved addresses."""
    addresses = await AddressService().list_addresses(user.user_id)
    return ShippingAddressListResponse(items=[ShippingAddressResponse.model_validate(a) for a in addresses])


@router.post(
    "",
    response_model=ShippingAddressResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save an address",
    description="Saves a shipping address. The first address, or one marked default, becomes the default.",
)
async def create_address(data: ShippingAddressCreate, user: CurrentUser) -> ShippingAddressResponse:
    """Save a shipping address for the current user.

    Args:
        data: Address fields.
        user: The authenticated user.

    Returns:
        ShippingAddressResponse: The saved address.
    """
    address = await AddressService().create_address(user.user_id, data)
    return ShippingAddressResponse.model_validate(address)


@router.put(
    "/{address_id}/default",
    response_model=ShippingAddressResponse,
    summary="Make an address the default",
)
async def set_default_address(address_id: UUID, user: CurrentUser) -> ShippingAddressResponse:
    """Make one of the user's addresses the default.

    Raises:
        HTTPException: 404 if the address does not exist.
    """
    address = await AddressService().set_default(address_id, user.user_id)
    if not address:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Address not found",
        )
    return ShippingAddressResponse.model_validate(address)


@router.delete(
    "/{address_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an address",
)
async def delete_address(address_id: UUID, user: CurrentUser) -> None:
    """Delete one of the user's addresses.

    Raises:
        HTTPException: 404 if the address does not exist.
    """
    if not await AddressService().delete_address(address_id, user.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Address not found",
        )
