from datetime import date, time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.errors import ValidationError
from slotbook.models.booking import ACTIVE_STATUSES, Booking, BookingStatus


async def get_booking_by_token(session: AsyncSession, token: str) -> Booking | None:
    result = await session.execute(select(Booking).where(Booking.access_token == token))
    return result.scalar_one_or_none()


async def get_booking_for_provider(
    session: AsyncSession, provider_id: int, booking_id: int
) -> Booking | None:
    result = await session.execute(
        select(Booking).where(Booking.id == booking_id, Booking.provider_id == provider_id)
    )
    return result.scalar_one_or_none()


async def list_active_bookings(
    session: AsyncSession, provider_id: int, start: date, end: date | None = None
) -> list[Booking]:
    """Pending/confirmed bookings, i.e. the ones occupying their slot."""
    result = await session.execute(
        select(Booking)
        .where(
            Booking.provider_id == provider_id,
            Booking.date >= start,
            Booking.date <= (end or start),
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Booking.date, Booking.start_time)
    )
    return list(result.scalars().all())


async def list_bookings_for_provider(
    session: AsyncSession,
    provider_id: int,
    start: date | None = None,
    end: date | None = None,
    status: str | None = None,
) -> list[Booking]:
    q = select(Booking).where(Booking.provider_id == provider_id)
    if start:
        q = q.where(Booking.date >= start)
    if end:
        q = q.where(Booking.date <= end)
    if status:
        try:
            q = q.where(Booking.status == BookingStatus(status).value)
        except ValueError as e:
            raise ValidationError(f"Unknown booking status: {status}") from e
    result = await session.execute(q.order_by(Booking.date, Booking.start_time))
    return list(result.scalars().all())


async def slot_has_active_booking(
    session: AsyncSession, provider_id: int, d: date, start: time, end: time
) -> bool:
    result = await session.execute(
        select(Booking.id)
        .where(
            Booking.provider_id == provider_id,
            Booking.date == d,
            Booking.start_time == start,
            Booking.end_time == end,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        .limit(1)
    )
    return result.first() is not None


async def count_bookings_by_date(
    session: AsyncSession, provider_id: int, start: date, end: date, statuses: tuple[str, ...]
) -> dict[date, int]:
    result = await session.execute(
        select(Booking.date, func.count(Booking.id))
        .where(
            Booking.provider_id == provider_id,
            Booking.date >= start,
            Booking.date <= end,
            Booking.status.in_(statuses),
        )
        .group_by(Booking.date)
    )
    return {d: n for d, n in result.all()}


async def count_bookings_by_status(
    session: AsyncSession, provider_id: int, start: date, end: date
) -> dict[str, int]:
    result = await session.execute(
        select(Booking.status, func.count(Booking.id))
        .where(Booking.provider_id == provider_id, Booking.date >= start, Booking.date <= end)
        .group_by(Booking.status)
    )
    return {status: n for status, n in result.all()}


async def count_bookings(session: AsyncSession, provider_id: int, statuses: tuple[str, ...]) -> int:
    result = await session.execute(
        select(func.count(Booking.id)).where(
            Booking.provider_id == provider_id, Booking.status.in_(statuses)
        )
    )
    return result.scalar_one()
