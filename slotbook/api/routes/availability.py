from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.schemas.availability import AvailabilityRangeResponse, DayAvailabilityResponse, SlotInfo
from slotbook.core.db import get_session
from slotbook.core.errors import NotFoundError
from slotbook.services import availability_service
from slotbook.services.auth_service import get_provider
from slotbook.services.availability_service import DayAvailability, SlotAvailability
from slotbook.services.time_format import format_time
from slotbook.services.working_hours_service import uses_12h_format

router = APIRouter(prefix="/availability", tags=["availability"])


def slot_to_info(slot: SlotAvailability, use_12h: bool) -> SlotInfo:
    return SlotInfo(
        start=slot.start,
        end=slot.end,
        start_display=format_time(slot.start, use_12h),
        end_display=format_time(slot.end, use_12h),
        is_available=slot.is_available,
        is_booked=slot.is_booked,
    )


def day_to_response(day: DayAvailability, use_12h: bool) -> DayAvailabilityResponse:
    return DayAvailabilityResponse(
        date=day.date,
        is_working_day=day.is_working_day,
        basis=day.basis.value,
        slots=[slot_to_info(s, use_12h) for s in day.slots],
    )


async def _require_provider(session: AsyncSession, provider_id: int) -> None:
    if await get_provider(session, provider_id) is None:
        raise NotFoundError("Provider not found")


@router.get("", response_model=DayAvailabilityResponse)
async def get_availability(
    date: date = Query(..., description="YYYY-MM-DD"),
    provider_id: int = Query(...),
    session: AsyncSession = Depends(get_session),
) -> DayAvailabilityResponse:
    """Bookable slots for one provider and date (public)."""
    await _require_provider(session, provider_id)
    day = await availability_service.resolve(session, provider_id, date)
    return day_to_response(day, await uses_12h_format(session, provider_id))


@router.get("/range", response_model=AvailabilityRangeResponse)
async def get_availability_range(
    start: date = Query(...),
    end: date = Query(...),
    provider_id: int = Query(...),
    session: AsyncSession = Depends(get_session),
) -> AvailabilityRangeResponse:
    await _require_provider(session, provider_id)
    days = await availability_service.resolve_range(session, provider_id, start, end)
    use_12h = await uses_12h_format(session, provider_id)
    return AvailabilityRangeResponse(
        provider_id=provider_id,
        start=start,
        end=end,
        days=[day_to_response(d, use_12h) for d in days],
    )
