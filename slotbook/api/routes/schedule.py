"""Provider-side schedule management: weekly hours, settings, exceptions and
custom slots. Every route acts on the authenticated provider's own schedule."""
import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_current_provider, holiday_provider
from slotbook.api.schemas.schedule import (
    ExceptionCreate,
    ExceptionPublic,
    ScheduleDefaults,
    SeedHolidaysRequest,
    SettingsPublic,
    SettingsUpdate,
    TimeSlotPublic,
    TimeSlotsUpdate,
    WorkingHoursPublic,
    WorkingHoursUpdate,
)
from slotbook.core.config import settings
from slotbook.core.db import get_session
from slotbook.core.errors import NotFoundError, ValidationError
from slotbook.models.availability import AvailabilityException, AvailabilitySettings, CustomTimeSlot, WorkingHours
from slotbook.models.provider import Provider
from slotbook.services import exception_service, time_slot_service, working_hours_service
from slotbook.services.calendar import DAY_NAMES, day_name, normalize_day_index
from slotbook.services.holiday_service import HolidayProvider
from slotbook.services.time_format import format_time
from slotbook.services.time_slot_service import CustomSlotEntry
from slotbook.services.working_hours_service import WorkingHoursEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedule", tags=["schedule"])


def _hours_public(rows: list[WorkingHours]) -> list[WorkingHoursPublic]:
    return [
        WorkingHoursPublic(
            day_of_week=r.day_of_week,
            day_name=day_name(r.day_of_week),
            start_time=r.start_time,
            end_time=r.end_time,
            is_working=r.is_working,
        )
        for r in rows
    ]


def _settings_public(row: AvailabilitySettings | None) -> SettingsPublic:
    if row is None:
        return SettingsPublic(
            slot_duration_minutes=settings.default_slot_duration_minutes,
            time_format_12h=False,
            timezone=settings.default_timezone,
        )
    return SettingsPublic(
        slot_duration_minutes=row.slot_duration_minutes,
        time_format_12h=row.time_format_12h,
        timezone=row.timezone,
    )


def _exception_public(row: AvailabilityException) -> ExceptionPublic:
    return ExceptionPublic(
        date=row.date, is_available=row.is_available, reason=row.reason, created_at=row.created_at
    )


def _slot_public(row: CustomTimeSlot, use_12h: bool) -> TimeSlotPublic:
    return TimeSlotPublic(
        start_time=row.start_time,
        end_time=row.end_time,
        start_display=format_time(row.start_time, use_12h),
        end_display=format_time(row.end_time, use_12h),
        is_available=row.is_available,
        is_booked=row.is_booked,
    )


# --- Weekly working hours ---

@router.get("/working-hours", response_model=list[WorkingHoursPublic])
async def get_working_hours(
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[WorkingHoursPublic]:
    return _hours_public(await working_hours_service.list_working_hours(session, current_provider.id))


@router.put("/working-hours", response_model=list[WorkingHoursPublic])
async def put_working_hours(
    body: WorkingHoursUpdate,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[WorkingHoursPublic]:
    """Replace the whole week; all seven days must be given."""
    entries = [
        WorkingHoursEntry(
            day_of_week=normalize_day_index(item.day_of_week, sunday_first=body.sunday_first),
            start_time=item.start_time,
            end_time=item.end_time,
            is_working=item.is_working,
        )
        for item in body.days
    ]
    if {e.day_of_week for e in entries} != set(DAY_NAMES) or len(entries) != len(DAY_NAMES):
        raise ValidationError("Working hours must list each of the seven days exactly once")
    rows = await working_hours_service.save_working_hours(session, current_provider.id, entries)
    return _hours_public(rows)


# --- Settings ---

@router.get("/settings", response_model=SettingsPublic)
async def get_settings(
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> SettingsPublic:
    row = await working_hours_service.get_availability_settings(session, current_provider.id)
    return _settings_public(row)


@router.put("/settings", response_model=SettingsPublic)
async def put_settings(
    body: SettingsUpdate,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> SettingsPublic:
    row = await working_hours_service.save_availability_settings(
        session,
        current_provider.id,
        slot_duration_minutes=body.slot_duration_minutes,
        time_format_12h=body.time_format_12h,
        timezone=body.timezone,
    )
    return _settings_public(row)


@router.post("/populate-defaults", response_model=ScheduleDefaults)
async def populate_defaults(
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> ScheduleDefaults:
    row, hours = await working_hours_service.populate_defaults(session, current_provider.id)
    return ScheduleDefaults(settings=_settings_public(row), working_hours=_hours_public(hours))


# --- Exceptions and holidays ---

@router.get("/exceptions", response_model=list[ExceptionPublic])
async def list_exceptions(
    start: date = Query(...),
    end: date = Query(...),
    unavailable_only: bool = Query(False, description="Only days off, e.g. holidays"),
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[ExceptionPublic]:
    rows = await exception_service.list_exceptions(
        session, current_provider.id, start, end, only_unavailable=unavailable_only
    )
    return [_exception_public(r) for r in rows]


@router.post("/exceptions", response_model=list[ExceptionPublic], status_code=status.HTTP_201_CREATED)
async def create_exception(
    body: ExceptionCreate,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[ExceptionPublic]:
    """Set an exception for one date, replacing any existing one. Unavailable
    dates may recur on the same day of the following years."""
    if body.is_available:
        if body.recurring_years:
            raise ValidationError("Only unavailable dates can recur")
        rows = await exception_service.set_exceptions(
            session, current_provider.id, [body.date], is_available=True, reason=body.reason
        )
    else:
        rows = await exception_service.add_holiday(
            session, current_provider.id, body.date, body.reason, body.recurring_years
        )
    return [_exception_public(r) for r in rows]


@router.post("/exceptions/seed-holidays", response_model=list[ExceptionPublic])
async def seed_holidays(
    body: SeedHolidaysRequest,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
    holidays: HolidayProvider = Depends(holiday_provider),
) -> list[ExceptionPublic]:
    rows = await exception_service.seed_holidays(
        session,
        current_provider.id,
        body.start,
        body.end,
        body.region or settings.holiday_region,
        holidays,
    )
    return [_exception_public(r) for r in rows]


@router.delete("/exceptions/{exception_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exception(
    exception_date: date,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> None:
    await exception_service.delete_exception(session, current_provider.id, exception_date)


# --- Custom time slots ---

@router.get("/time-slots", response_model=list[TimeSlotPublic])
async def get_time_slots(
    slot_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[TimeSlotPublic]:
    rows = await time_slot_service.list_custom_slots(session, current_provider.id, slot_date)
    use_12h = await working_hours_service.uses_12h_format(session, current_provider.id)
    return [_slot_public(r, use_12h) for r in rows]


@router.put("/time-slots", response_model=list[TimeSlotPublic])
async def put_time_slots(
    body: TimeSlotsUpdate,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[TimeSlotPublic]:
    rows = await time_slot_service.replace_custom_slots(
        session,
        current_provider.id,
        body.date,
        [CustomSlotEntry(s.start_time, s.end_time, s.is_available) for s in body.slots],
    )
    use_12h = await working_hours_service.uses_12h_format(session, current_provider.id)
    return [_slot_public(r, use_12h) for r in rows]


@router.delete("/time-slots", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_slots(
    slot_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> None:
    removed = await time_slot_service.clear_custom_slots(session, current_provider.id, slot_date)
    if not removed:
        raise NotFoundError(f"No custom slots on {slot_date.isoformat()}")
    logger.info("Cleared %d custom slot(s) for provider %s on %s", removed, current_provider.id, slot_date)
