"""Saved shipping address service."""

import logging
from uuid import UUID

from src.core.supabase import get_supabase_client
from src.models.address import ShippingAddressRow
from src.schemas.address import ShippingAddressCreate
from src.schemas.common import utc_now

logger = logging.getLogger(__name__)


class AddressService:
    """Service for a user's saved shipping addresses.

    At most one address per user is the default: making an address the
    default clears the flag on the user's other addresses.
    """

    def __init__(self) -> None:
        """Initialize address service with Supabase client."""
        self.client = get_supabase_client()

    async def list_addresses(self, user_id: UUID) -> list[ShippingAddressRow]:
        """Get a user's addresses, default first then newest first."""
        response = (
            self.client.table("shipping_addresses")
            .select("*")
            .eq("user_id", str(user_id))
            .order("is_default", desc=True)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def get_address(self, address_id: UUID, user_id: UUID) -> ShippingAddressRow | None:
        """Get one of a user's addresses.

        Args:
            address_id: The address UUID.
            user_id: Owning user.

        Returns:
            dict | None: The address, or None if it does not exist or
            belongs to someone else.
        """
        response = (
            self.client.table("shipping_addresses")
            .select("*")
            .eq("id", str(address_id))
            .eq("user_id", str(user_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def create_address(self, user_id: UUID, data: ShippingAddressCreate) -> ShippingAddressRow:
        """Save a new address for a user.

        The user's first address becomes the default automatically.

        Args:
            user_id: Owning user.
            data: Address fields.

        Returns:
            dict: The created address.
        """
        existing = await self.list_addresses(user_id)
        make_default = data.is_default or not existing

        if make_default:
            await self._clear_default(user_id)

        row = data.model_dump(exclude={"is_default"})
        row.update({"user_id": str(user_id), "is_default": make_default})

        response = self.client.table("shipping_addresses").insert(row).execute()
        address = response.data[0]
        logger.info("Saved address %s for user %s (default=%s)", address["id"], user_id, make_default)
        return address

    async def set_default(self, address_id: UUID, user_id: UUID) -> ShippingAddressRow | None:
        """Make an address the user's default.

        Returns:
            dict | None: The updated address, or None if not found.
        """
        if not await self.get_address(address_id, user_id):
            return None

        await self._clear_default(user_id)
        response = (
            self.client.table("shipping_addresses")
            .update({"is_default": True, "updated_at": utc_now().isoformat()})
            .eq("id", str(address_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return response.data[0] if response.data else None

    async def delete_address(self, address_id: UUID, user_id: UUID) -> bool:
        """Delete one of a user's addresses.

        Returns:
            bool: True if an address was deleted.
        """
        response = (
            self.client.table("shipping_addresses")
            .delete()
            .eq("id", str(address_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return bool(response.data)

    async def _clear_default(self, user_id: UUID) -> None:
        self.client.table("shipping_addresses").update({"is_default": False}).eq(
            "user_id", str(user_id)
        ).eq("is_default", True).execute()
