"""Reservation slot availability routes."""

from typing import Annotated

from fastapi import APIRouter, Query

from src.api.middleware.error_handler import ValidationError
from src.schemas.reservation import AvailableTimeSlotsResponse, SlotCheckRequest, SlotCheckResponse
from src.services.reservation_service import InvalidReservationError, ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "/check-time-slot",
    response_model=SlotCheckResponse,
    summary="Check a reservation slot",
    description="Reports whether a product's date/time slot can still be booked. No authentication required.",
)
async def check_time_slot(data: SlotCheckRequest) -> SlotCheckResponse:
    """Check whether a single slot is free.

    Args:
        data: Product, date and time to check.

    Returns:
        SlotCheckResponse: Availability and message.

    Raises:
        ValidationError: 422 for past dates or malformed values.
    """
    try:
        return await ReservationService().check_time_slot(data.product_id, data.date, data.time)
    except InvalidReservationError as e:
        raise ValidationError(str(e)) from e


@router.get(
    "/available-time-slots",
    response_model=AvailableTimeSlotsResponse,
    summary="List reservation slots",
    description="Lists the hourly slots for a product on a date with their availability.",
)
async def available_time_slots(
    product_id: Annotated[str, Query(alias="productId", min_length=1)],
    reservation_date: Annotated[str, Query(alias="date")],
) -> AvailableTimeSlotsResponse:
    """List all slots on a date.

    Args:
        product_id: Reservable product UUID.
        reservation_date: Date (YYYY-MM-DD).

    Returns:
        AvailableTimeSlotsResponse: Slots in chronological order.

    Raises:
        ValidationError: 422 for past dates or malformed values.
    """
    try:
        slots = await ReservationService().get_available_time_slots(product_id, reservation_date)
    except InvalidReservationError as e:
        raise ValidationError(str(e)) from e
    return AvailableTimeSlotsResponse(time_slots=slots)
