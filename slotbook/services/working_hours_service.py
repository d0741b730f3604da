import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotbook.core.config import settings
from slotbook.core.db import datastore_errors, upsert
from slotbook.core.errors import ConfigurationError, ValidationError
from slotbook.models.availability import AvailabilitySettings, WorkingHours
from slotbook.services.calendar import day_name, normalize_day_index

logger = logging.getLogger(__name__)

MAX_SLOT_DURATION_MINUTES = 24 * 60


@dataclass(frozen=True)
class WorkingHoursEntry:
    day_of_week: int  # canonical 1=Monday .. 7=Sunday
    start_time: time
    end_time: time
    is_working: bool = True


DEFAULT_WORKING_HOURS: tuple[WorkingHoursEntry, ...] = (
    *(WorkingHoursEntry(day, time(9, 0), time(17, 0), True) for day in range(1, 6)),
    WorkingHoursEntry(6, time(10, 0), time(15, 0), False),
    WorkingHoursEntry(7, time(10, 0), time(15, 0), False),
)


def _utc_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


async def get_working_hours_for_day(
    session: AsyncSession, provider_id: int, day_of_week: int
) -> WorkingHours | None:
    with datastore_errors("load working hours"):
        result = await session.execute(
            select(WorkingHours).where(
                WorkingHours.provider_id == provider_id,
                WorkingHours.day_of_week == day_of_week,
            )
        )
    return result.scalar_one_or_none()


async def list_working_hours(session: AsyncSession, provider_id: int) -> list[WorkingHours]:
    with datastore_errors("list working hours"):
        result = await session.execute(
            select(WorkingHours)
            .where(WorkingHours.provider_id == provider_id)
            .order_by(WorkingHours.day_of_week)
            .execution_options(populate_existing=True)
        )
    return list(result.scalars().all())


def _validate_entries(entries: list[WorkingHoursEntry]) -> None:
    seen: set[int] = set()
    for entry in entries:
        day = normalize_day_index(entry.day_of_week)
        if day in seen:
            raise ValidationError(f"Duplicate working hours for {day_name(day)}")
        seen.add(day)
        if entry.is_working and entry.start_time >= entry.end_time:
            raise ValidationError(f"{day_name(day)}: start time must be before end time")


async def save_working_hours(
    session: AsyncSession, provider_id: int, entries: list[WorkingHoursEntry]
) -> list[WorkingHours]:
    """Upsert one row per given weekday; weekdays not listed are left as they are."""
    _validate_entries(entries)
    now = _utc_naive()
    rows = [
        {
            "provider_id": provider_id,
            "day_of_week": entry.day_of_week,
            "start_time": entry.start_time.replace(second=0, microsecond=0),
            "end_time": entry.end_time.replace(second=0, microsecond=0),
            "is_working": entry.is_working,
            "updated_at": now,
        }
        for entry in entries
    ]
    with datastore_errors("save working hours"):
        await upsert(
            session,
            WorkingHours,
            rows,
            conflict_columns=["provider_id", "day_of_week"],
            update_columns=["start_time", "end_time", "is_working", "updated_at"],
        )
    return await list_working_hours(session, provider_id)


async def get_availability_settings(
    session: AsyncSession, provider_id: int
) -> AvailabilitySettings | None:
    with datastore_errors("load availability settings"):
        result = await session.execute(
            select(AvailabilitySettings)
            .where(AvailabilitySettings.provider_id == provider_id)
            .execution_options(populate_existing=True)
        )
    return result.scalar_one_or_none()


def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {name}") from e
    return name


async def save_availability_settings(
    session: AsyncSession,
    provider_id: int,
    slot_duration_minutes: int,
    time_format_12h: bool = False,
    timezone: str | None = None,
) -> AvailabilitySettings:
    if not 0 < slot_duration_minutes <= MAX_SLOT_DURATION_MINUTES:
        raise ValidationError("Slot duration must be between 1 and 1440 minutes")
    tz = validate_timezone(timezone or settings.default_timezone)
    row = {
        "provider_id": provider_id,
        "slot_duration_minutes": slot_duration_minutes,
        "time_format_12h": time_format_12h,
        "timezone": tz,
        "updated_at": _utc_naive(),
    }
    with datastore_errors("save availability settings"):
        await upsert(
            session,
            AvailabilitySettings,
            [row],
            conflict_columns=["provider_id"],
            update_columns=["slot_duration_minutes", "time_format_12h", "timezone", "updated_at"],
        )
    return await get_availability_settings(session, provider_id)


async def populate_defaults(
    session: AsyncSession, provider_id: int
) -> tuple[AvailabilitySettings, list[WorkingHours]]:
    """Seed Mon-Fri 09:00-17:00 working, Sat/Sun off, and default settings."""
    logger.info("Populating default availability for provider %s", provider_id)
    avail_settings = await save_availability_settings(
        session,
        provider_id,
        slot_duration_minutes=settings.default_slot_duration_minutes,
        timezone=settings.default_timezone,
    )
    hours = await save_working_hours(session, provider_id, list(DEFAULT_WORKING_HOURS))
    return avail_settings, hours


async def uses_12h_format(session: AsyncSession, provider_id: int) -> bool:
    avail_settings = await get_availability_settings(session, provider_id)
    return bool(avail_settings and avail_settings.time_format_12h)


async def provider_timezone(session: AsyncSession, provider_id: int) -> ZoneInfo:
    """The provider's configured zone, or the service default without settings."""
    avail_settings = await get_availability_settings(session, provider_id)
    name = avail_settings.timezone if avail_settings else settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error("Provider %s has invalid timezone %r", provider_id, name)
        raise ConfigurationError(f"Invalid provider timezone: {name}") from e
