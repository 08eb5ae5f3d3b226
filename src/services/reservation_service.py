"""Reservation slot availability service."""

import logging
import re
from datetime import date

from src.core.supabase import get_supabase_client
from src.schemas.reservation import SlotCheckResponse, TimeSlot

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

# Hourly slots offered for every reservable product
FIRST_SLOT_HOUR = 9
LAST_SLOT_HOUR = 18

SLOT_AVAILABLE_MESSAGE = "Time slot is available."
SLOT_TAKEN_MESSAGE = "This time slot is no longer available. Please select another time slot."


class InvalidReservationError(ValueError):
    """Reservation date or time that cannot be booked."""


def all_time_slots() -> list[str]:
    """Every slot start time, in order."""
    return [f"{hour:02d}:00" for hour in range(FIRST_SLOT_HOUR, LAST_SLOT_HOUR + 1)]


def validate_slot(reservation_date: str, reservation_time: str | None = None) -> None:
    """Check the format of a slot and that its date is not in the past.

    Raises:
        InvalidReservationError: If the date or time is invalid.
    """
    if not DATE_PATTERN.match(reservation_date or ""):
        raise InvalidReservationError("Invalid date format. Expected YYYY-MM-DD")

    try:
        day = date.fromisoformat(reservation_date)
    except ValueError as e:
        raise InvalidReservationError("Invalid date format. Expected YYYY-MM-DD") from e

    if reservation_time is not None and not TIME_PATTERN.match(reservation_time):
        raise InvalidReservationError("Invalid time slot format. Expected HH:MM")

    if day < date.today():
        raise InvalidReservationError("Cannot book reservations for past dates")


class ReservationService:
    """Answers whether reservation slots are still free.

    A slot is taken once any order that is not cancelled contains a
    reservation item for the same product, date and time. Pending orders
    count, so two shoppers cannot pay for the same slot.
    """

    def __init__(self) -> None:
        """Initialize reservation service with Supabase client."""
        self.client = get_supabase_client()

    async def check_time_slot(self, product_id: str, reservation_date: str, reservation_time: str) -> SlotCheckResponse:
        """Check whether a single slot is free.

        Args:
            product_id: Reservable product UUID.
            reservation_date: Date (YYYY-MM-DD).
            reservation_time: Time (HH:MM).

        Returns:
            SlotCheckResponse: Availability and message.

        Raises:
            InvalidReservationError: If the date or time is invalid.
        """
        validate_slot(reservation_date, reservation_time)

        booked = reservation_time in await self.get_booked_times(product_id, reservation_date)
        if booked:
            logger.info("Slot %s %s for product %s is taken", reservation_date, reservation_time, product_id)

        return SlotCheckResponse(
            available=not booked,
            message=SLOT_TAKEN_MESSAGE if booked else SLOT_AVAILABLE_MESSAGE,
        )

    async def get_available_time_slots(self, product_id: str, reservation_date: str) -> list[TimeSlot]:
        """List every slot on a date with its availability.

        Raises:
            InvalidReservationError: If the date is invalid.
        """
        validate_slot(reservation_date)

        booked = await self.get_booked_times(product_id, reservation_date)
        return [TimeSlot(timeslot=slot, is_available=slot not in booked) for slot in all_time_slots()]

    async def get_booked_times(self, product_id: str, reservation_date: str) -> set[str]:
        """Get the HH:MM times already booked for a product on a date."""
        response = (
            self.client.table("orders")
            .select("id, items")
            .contains(
                "items",
                [{"product_id": product_id, "is_reservation": True, "reservation_date": reservation_date}],
            )
            .neq("status", "cancelled")
            .execute()
        )

        booked: set[str] = set()
        for order in response.data or []:
            for item in order.get("items") or []:
                if (
                    item.get("is_reservation")
                    and item.get("product_id") == product_id
                    and item.get("reservation_date") == reservation_date
                    and item.get("reservation_time")
                ):
                    # Stored TIME values may carry seconds
                    booked.add(item["reservation_time"][:5])
        return booked
