from datetime import date, time

from pydantic import BaseModel


class SlotInfo(BaseModel):
    start: time
    end: time
    start_display: str
    end_display: str
    is_available: bool
    is_booked: bool


class DayAvailabilityResponse(BaseModel):
    date: date
    is_working_day: bool
    basis: str  # none | custom | generated
    slots: list[SlotInfo]


class AvailabilityRangeResponse(BaseModel):
    provider_id: int
    start: date
    end: date
    days: list[DayAvailabilityResponse]
