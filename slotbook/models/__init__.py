from slotbook.models.provider import Provider, ProviderCreate, ProviderPublic
from slotbook.models.availability import (
    AvailabilityException,
    AvailabilitySettings,
    CustomTimeSlot,
    WorkingHours,
)
from slotbook.models.booking import ACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus

__all__ = [
    "Provider",
    "ProviderCreate",
    "ProviderPublic",
    "WorkingHours",
    "AvailabilityException",
    "CustomTimeSlot",
    "AvailabilitySettings",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
]
