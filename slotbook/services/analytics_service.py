"""Provider dashboard figures over a date period.

Booking counts come from the bookings table. Slot counts come from resolving
every date of the period, so generated and custom days are counted alike.
"""
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.db import datastore_errors
from slotbook.core.errors import ValidationError
from slotbook.models.booking import BookingStatus
from slotbook.services import availability_service, booking_service, working_hours_service
from slotbook.services.availability_service import DayAvailability, SlotAvailability

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "year")
# a year back from today, inclusive of both ends and a leap day
MAX_PERIOD_DAYS = 367

# every booking except a cancelled one counts as made
COUNTED_STATUSES: tuple[str, ...] = tuple(s.value for s in BookingStatus if s != BookingStatus.CANCELLED)


@dataclass(frozen=True)
class DailyTrend:
    date: date
    bookings: int
    available_slots: int
    total_slots: int


@dataclass(frozen=True)
class DashboardStats:
    start: date
    end: date
    today: date
    today_bookings: int
    today_trend: int
    available_slots: int
    total_slots: int
    booked_slots: int
    total_bookings: int
    booking_rate: int
    status_counts: dict[str, int] = field(default_factory=dict)
    daily: list[DailyTrend] = field(default_factory=list)
    today_slots: tuple[SlotAvailability, ...] = ()


def _months_back(d: date, months: int) -> date:
    month_index = d.year * 12 + d.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(d.day, calendar.monthrange(year, month)[1]))


def period_bounds(
    period: str, today: date, start: date | None = None, end: date | None = None
) -> tuple[date, date]:
    """Explicit start/end win over the named period. Named periods end today."""
    if start is not None or end is not None:
        if start is None or end is None:
            raise ValidationError("Both start_date and end_date are required")
    elif period == "week":
        start, end = today - timedelta(days=7), today
    elif period == "month":
        start, end = _months_back(today, 1), today
    elif period == "year":
        start, end = _months_back(today, 12), today
    else:
        raise ValidationError(f"Unknown period: {period}. Use one of {', '.join(PERIODS)}")
    if end < start:
        raise ValidationError("End date must not be before start date")
    if (end - start).days + 1 > MAX_PERIOD_DAYS:
        raise ValidationError(f"Date range may span at most {MAX_PERIOD_DAYS} days")
    return start, end


async def provider_today(session: AsyncSession, provider_id: int, now: datetime | None = None) -> date:
    tz = await working_hours_service.provider_timezone(session, provider_id)
    return (now or datetime.now(tz)).astimezone(tz).date()


def _slot_totals(days: list[DayAvailability]) -> tuple[int, int, int]:
    slots = [s for day in days for s in day.slots]
    return (
        sum(1 for s in slots if s.is_available),
        len(slots),
        sum(1 for s in slots if s.is_booked),
    )


async def get_dashboard(
    session: AsyncSession,
    provider_id: int,
    period: str = "week",
    start: date | None = None,
    end: date | None = None,
    today: date | None = None,
) -> DashboardStats:
    if today is None:
        today = await provider_today(session, provider_id)
    start, end = period_bounds(period, today, start, end)

    days = await availability_service.resolve_range(session, provider_id, start, end, max_days=MAX_PERIOD_DAYS)
    today_day = next((d for d in days if d.date == today), None)
    if today_day is None:
        today_day = await availability_service.resolve(session, provider_id, today)

    yesterday = today - timedelta(days=1)
    with datastore_errors("load dashboard"):
        per_date = await booking_service.count_bookings_by_date(
            session, provider_id, min(start, yesterday), max(end, today), COUNTED_STATUSES
        )
        by_status = await booking_service.count_bookings_by_status(session, provider_id, start, end)
        total_bookings = await booking_service.count_bookings(session, provider_id, COUNTED_STATUSES)

    available, total, booked = _slot_totals(days)
    today_bookings = per_date.get(today, 0)
    logger.debug("Dashboard for provider %s over %s..%s: %d/%d slots booked", provider_id, start, end, booked, total)
    return DashboardStats(
        start=start,
        end=end,
        today=today,
        today_bookings=today_bookings,
        today_trend=today_bookings - per_date.get(yesterday, 0),
        available_slots=available,
        total_slots=total,
        booked_slots=booked,
        total_bookings=total_bookings,
        booking_rate=round(booked / total * 100) if total else 0,
        status_counts={s.value: by_status.get(s.value, 0) for s in BookingStatus},
        daily=[
            DailyTrend(
                date=day.date,
                bookings=per_date.get(day.date, 0),
                available_slots=sum(1 for s in day.slots if s.is_available),
                total_slots=len(day.slots),
            )
            for day in days
        ],
        today_slots=today_day.slots,
    )
