"""Availability resolution for one provider and date.

Precedence is an ordered chain of rules. Each rule either answers for the date
(``Authoritative``) or passes to the next one (``DEFER``):

    exception  >  custom slots  >  working hours

Live pending/confirmed bookings are then overlaid on the winning slot basis by
exact (start, end) equality.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import date, time
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.db import datastore_errors
from slotbook.core.errors import ConfigurationError, ValidationError
from slotbook.models.availability import AvailabilitySettings
from slotbook.services import booking_service, exception_service, time_slot_service, working_hours_service
from slotbook.services.calendar import day_of_week, iter_dates
from slotbook.services.slot_generator import generate_slots

logger = logging.getLogger(__name__)


class SlotBasis(str, Enum):
    NONE = "none"
    CUSTOM = "custom"
    GENERATED = "generated"


@dataclass(frozen=True)
class SlotAvailability:
    start: time
    end: time
    is_available: bool
    is_booked: bool = False


@dataclass(frozen=True)
class DayAvailability:
    date: date
    is_working_day: bool
    slots: tuple[SlotAvailability, ...] = ()
    basis: SlotBasis = SlotBasis.NONE

    def find_slot(self, start: time, end: time) -> SlotAvailability | None:
        return next((s for s in self.slots if s.start == start and s.end == end), None)


@dataclass(frozen=True)
class Authoritative:
    is_working_day: bool
    slots: tuple[SlotAvailability, ...] = ()
    basis: SlotBasis = SlotBasis.NONE


class _Defer:
    def __repr__(self) -> str:
        return "DEFER"


DEFER = _Defer()


@dataclass
class ResolutionContext:
    provider_id: int
    date: date
    availability_settings: AvailabilitySettings | None = None
    forced_working: bool = False

    @property
    def slot_duration_minutes(self) -> int:
        if self.availability_settings is None:
            return settings.default_slot_duration_minutes
        return self.availability_settings.slot_duration_minutes


Rule = Callable[[AsyncSession, ResolutionContext], Awaitable[Authoritative | _Defer]]

NON_WORKING = Authoritative(is_working_day=False)


async def exception_rule(session: AsyncSession, ctx: ResolutionContext) -> Authoritative | _Defer:
    exc = await exception_service.get_exception(session, ctx.provider_id, ctx.date)
    if exc is None:
        return DEFER
    if not exc.is_available:
        logger.debug("Provider %s unavailable on %s: %s", ctx.provider_id, ctx.date, exc.reason)
        return NON_WORKING
    ctx.forced_working = True
    return DEFER


async def custom_slot_rule(session: AsyncSession, ctx: ResolutionContext) -> Authoritative | _Defer:
    rows = await time_slot_service.list_custom_slots(session, ctx.provider_id, ctx.date)
    if not rows:
        return DEFER
    return Authoritative(
        is_working_day=True,
        slots=tuple(
            SlotAvailability(
                start=row.start_time,
                end=row.end_time,
                is_available=row.is_available and not row.is_booked,
                is_booked=row.is_booked,
            )
            for row in rows
        ),
        basis=SlotBasis.CUSTOM,
    )


async def working_hours_rule(session: AsyncSession, ctx: ResolutionContext) -> Authoritative:
    hours = await working_hours_service.get_working_hours_for_day(
        session, ctx.provider_id, day_of_week(ctx.date)
    )
    if hours is None or not hours.is_working:
        # the stored window of a non-working day is ignored; an available-exception
        # still makes the day working with nothing to book
        return Authoritative(is_working_day=True) if ctx.forced_working else NON_WORKING
    windows = generate_slots(hours.start_time, hours.end_time, ctx.slot_duration_minutes)
    return Authoritative(
        is_working_day=True,
        slots=tuple(SlotAvailability(w.start, w.end, is_available=True) for w in windows),
        basis=SlotBasis.GENERATED,
    )


RULES: tuple[Rule, ...] = (exception_rule, custom_slot_rule, working_hours_rule)


async def _resolve(session: AsyncSession, provider_id: int, d: date) -> DayAvailability:
    ctx = ResolutionContext(
        provider_id=provider_id,
        date=d,
        availability_settings=await working_hours_service.get_availability_settings(session, provider_id),
    )
    for rule in RULES:
        outcome = await rule(session, ctx)
        if isinstance(outcome, Authoritative):
            break
    else:
        raise ConfigurationError("No availability rule produced a result")

    day = DayAvailability(d, outcome.is_working_day, outcome.slots, outcome.basis)
    if not day.slots:
        return day

    booked = {
        (b.start_time, b.end_time)
        for b in await booking_service.list_active_bookings(session, provider_id, d)
    }
    return replace(
        day,
        slots=tuple(
            replace(s, is_available=False, is_booked=True) if (s.start, s.end) in booked else s
            for s in day.slots
        ),
    )


async def resolve(session: AsyncSession, provider_id: int, d: date) -> DayAvailability:
    """Bookable windows for a provider on a date.

    All reads run in the caller's session transaction. ConfigurationError is
    logged loudly since it means stored schedule data is malformed.
    """
    try:
        with datastore_errors("resolve availability"):
            return await _resolve(session, provider_id, d)
    except ConfigurationError:
        logger.exception("Bad availability configuration for provider %s on %s", provider_id, d)
        raise


async def resolve_range(
    session: AsyncSession, provider_id: int, start: date, end: date, max_days: int | None = None
) -> list[DayAvailability]:
    max_days = max_days or settings.max_range_days
    if end < start:
        raise ValidationError("End date must not be before start date")
    if (end - start).days + 1 > max_days:
        raise ValidationError(f"Date range may span at most {max_days} days")
    return [await resolve(session, provider_id, d) for d in iter_dates(start, end)]
