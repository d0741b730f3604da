from datetime import date, datetime, time

from pydantic import BaseModel, Field


class WorkingHoursItem(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_working: bool = True


class WorkingHoursUpdate(BaseModel):
    days: list[WorkingHoursItem]
    sunday_first: bool = False  # day_of_week given as 0=Sunday .. 6=Saturday


class WorkingHoursPublic(BaseModel):
    day_of_week: int  # 1=Monday .. 7=Sunday
    day_name: str
    start_time: time
    end_time: time
    is_working: bool


class SettingsUpdate(BaseModel):
    slot_duration_minutes: int
    time_format_12h: bool = False
    timezone: str | None = None


class SettingsPublic(BaseModel):
    slot_duration_minutes: int
    time_format_12h: bool
    timezone: str


class ScheduleDefaults(BaseModel):
    settings: SettingsPublic
    working_hours: list[WorkingHoursPublic]


class ExceptionCreate(BaseModel):
    date: date
    is_available: bool = False
    reason: str | None = None
    recurring_years: int = Field(default=0, ge=0)


class ExceptionPublic(BaseModel):
    date: date
    is_available: bool
    reason: str | None = None
    created_at: datetime


class SeedHolidaysRequest(BaseModel):
    start: date
    end: date
    region: str | None = None


class TimeSlotItem(BaseModel):
    start_time: time
    end_time: time
    is_available: bool = True


class TimeSlotsUpdate(BaseModel):
    date: date
    slots: list[TimeSlotItem]


class TimeSlotPublic(BaseModel):
    start_time: time
    end_time: time
    start_display: str
    end_display: str
    is_available: bool
    is_booked: bool
