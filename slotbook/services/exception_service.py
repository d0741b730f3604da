import logging
from datetime import UTC, date, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.db import datastore_errors, upsert
from slotbook.core.errors import NotFoundError, ValidationError
from slotbook.models.availability import AvailabilityException
from slotbook.services.holiday_service import HolidayProvider

logger = logging.getLogger(__name__)

DEFAULT_HOLIDAY_REASON = "Holiday"
MAX_RECURRING_YEARS = 10


def _utc_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _same_day_in_year(d: date, year: int) -> date:
    # 29 Feb falls back to 28 Feb in non-leap years
    try:
        return d.replace(year=year)
    except ValueError:
        return d.replace(year=year, day=28)


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("End date must not be before start date")
    if (end - start).days + 1 > settings.max_range_days * 12:
        raise ValidationError("Date range too large")


async def get_exception(
    session: AsyncSession, provider_id: int, d: date
) -> AvailabilityException | None:
    with datastore_errors("load availability exception"):
        result = await session.execute(
            select(AvailabilityException).where(
                AvailabilityException.provider_id == provider_id,
                AvailabilityException.date == d,
            )
        )
    return result.scalar_one_or_none()


async def list_exceptions(
    session: AsyncSession,
    provider_id: int,
    start: date,
    end: date,
    only_unavailable: bool = False,
) -> list[AvailabilityException]:
    _check_range(start, end)
    q = (
        select(AvailabilityException)
        .where(
            AvailabilityException.provider_id == provider_id,
            AvailabilityException.date >= start,
            AvailabilityException.date <= end,
        )
        .order_by(AvailabilityException.date)
        .execution_options(populate_existing=True)
    )
    if only_unavailable:
        q = q.where(AvailabilityException.is_available == False)  # noqa: E712
    with datastore_errors("list availability exceptions"):
        result = await session.execute(q)
    return list(result.scalars().all())


async def set_exceptions(
    session: AsyncSession,
    provider_id: int,
    dates: list[date],
    is_available: bool,
    reason: str | None,
) -> list[AvailabilityException]:
    """Upsert an exception for each date, replacing whatever was there."""
    now = _utc_naive()
    rows = [
        {
            "provider_id": provider_id,
            "date": d,
            "is_available": is_available,
            "reason": reason,
            "created_at": now,
        }
        for d in sorted(set(dates))
    ]
    with datastore_errors("save availability exceptions"):
        await upsert(
            session,
            AvailabilityException,
            rows,
            conflict_columns=["provider_id", "date"],
            update_columns=["is_available", "reason"],
        )
        result = await session.execute(
            select(AvailabilityException)
            .where(
                AvailabilityException.provider_id == provider_id,
                AvailabilityException.date.in_([r["date"] for r in rows]),
            )
            .order_by(AvailabilityException.date)
            .execution_options(populate_existing=True)
        )
    return list(result.scalars().all())


async def add_holiday(
    session: AsyncSession,
    provider_id: int,
    d: date,
    reason: str | None = None,
    recurring_years: int = 0,
) -> list[AvailabilityException]:
    """Mark a date unavailable; with recurring_years, also the same day in each
    of the following years (one row per year)."""
    if not 0 <= recurring_years <= MAX_RECURRING_YEARS:
        raise ValidationError(f"recurring_years must be between 0 and {MAX_RECURRING_YEARS}")
    dates = [_same_day_in_year(d, year) for year in range(d.year, d.year + recurring_years + 1)]
    return await set_exceptions(
        session, provider_id, dates, is_available=False, reason=reason or DEFAULT_HOLIDAY_REASON
    )


async def delete_exception(session: AsyncSession, provider_id: int, d: date) -> None:
    with datastore_errors("delete availability exception"):
        result = await session.execute(
            delete(AvailabilityException).where(
                AvailabilityException.provider_id == provider_id,
                AvailabilityException.date == d,
            )
        )
        await session.flush()
    if not result.rowcount:
        raise NotFoundError(f"No availability exception on {d.isoformat()}")


async def seed_holidays(
    session: AsyncSession,
    provider_id: int,
    start: date,
    end: date,
    region: str,
    holiday_provider: HolidayProvider,
) -> list[AvailabilityException]:
    """Insert unavailable exceptions for public holidays in [start, end].

    Dates that already carry an exception keep it. Returns the rows created.
    """
    _check_range(start, end)
    holidays = await holiday_provider.holidays_in_range(start, end, region)
    if not holidays:
        return []
    existing = {e.date for e in await list_exceptions(session, provider_id, start, end)}
    now = _utc_naive()
    by_date = {h.date: h for h in reversed(holidays) if h.date not in existing}
    rows = [
        {
            "provider_id": provider_id,
            "date": h.date,
            "is_available": False,
            "reason": h.name,
            "created_at": now,
        }
        for h in sorted(by_date.values(), key=lambda h: h.date)
    ]
    with datastore_errors("seed holidays"):
        await upsert(session, AvailabilityException, rows, conflict_columns=["provider_id", "date"])
    logger.info(
        "Seeded %d holiday exception(s) for provider %s (%s, %s..%s)",
        len(rows), provider_id, region, start, end,
    )
    created = {r["date"] for r in rows}
    return [e for e in await list_exceptions(session, provider_id, start, end) if e.date in created]
