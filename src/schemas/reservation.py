"""Reservation slot availability schemas."""

from pydantic import AliasChoices, Field

from src.schemas.common import CamelModel


class SlotCheckRequest(CamelModel):
    """Schema for POST /reservations/check-time-slot."""

    product_id: str = Field(min_length=1, description="Reservable product UUID")
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$", description="Reservation date (YYYY-MM-DD)")
    time: str = Field(
        pattern=r"^\d{2}:\d{2}$",
        validation_alias=AliasChoices("time", "timeSlot", "time_slot"),
        description="Reservation time (HH:MM)",
    )


class SlotCheckResponse(CamelModel):
    """Availability of a single slot."""

    available: bool = Field(description="Whether the slot can still be booked")
    message: str | None = Field(default=None, description="Human-readable availability message")


class TimeSlot(CamelModel):
    """A bookable hour and whether it is still free."""

    timeslot: str = Field(description="Slot start time (HH:MM)")
    is_available: bool = Field(description="Whether the slot is free")


class AvailableTimeSlotsResponse(CamelModel):
    """All slots for a product on a date."""

    time_slots: list[TimeSlot] = Field(description="Slots in chronological order")
