import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.db import datastore_errors
from slotbook.core.errors import ValidationError
from slotbook.models.availability import CustomTimeSlot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomSlotEntry:
    start_time: time
    end_time: time
    is_available: bool = True


def _utc_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _window(entry: CustomSlotEntry) -> tuple[time, time]:
    # stored at minute precision
    return entry.start_time.replace(second=0, microsecond=0), entry.end_time.replace(second=0, microsecond=0)


async def list_custom_slots(session: AsyncSession, provider_id: int, d: date) -> list[CustomTimeSlot]:
    with datastore_errors("list custom slots"):
        result = await session.execute(
            select(CustomTimeSlot)
            .where(CustomTimeSlot.provider_id == provider_id, CustomTimeSlot.date == d)
            .order_by(CustomTimeSlot.start_time, CustomTimeSlot.end_time)
        )
    return list(result.scalars().all())


async def replace_custom_slots(
    session: AsyncSession, provider_id: int, d: date, entries: list[CustomSlotEntry]
) -> list[CustomTimeSlot]:
    """Replace the custom slot list for one date.

    Rows whose window survives keep their booked flag. An empty list removes
    the custom basis, so the date falls back to working hours.
    """
    windows: set[tuple[time, time]] = set()
    for entry in entries:
        key = _window(entry)
        if key[0] >= key[1]:
            raise ValidationError(
                f"Slot {entry.start_time.isoformat()}-{entry.end_time.isoformat()}: start must be before end"
            )
        if key in windows:
            raise ValidationError(f"Duplicate slot {key[0].isoformat()}-{key[1].isoformat()}")
        windows.add(key)

    with datastore_errors("replace custom slots"):
        return await _apply_custom_slots(session, provider_id, d, entries)


async def _apply_custom_slots(
    session: AsyncSession, provider_id: int, d: date, entries: list[CustomSlotEntry]
) -> list[CustomTimeSlot]:
    existing = {(s.start_time, s.end_time): s for s in await list_custom_slots(session, provider_id, d)}
    now = _utc_naive()
    for entry in entries:
        key = _window(entry)
        slot = existing.pop(key, None)
        if slot is None:
            slot = CustomTimeSlot(provider_id=provider_id, date=d, start_time=key[0], end_time=key[1])
        slot.is_available = entry.is_available
        slot.updated_at = now
        session.add(slot)
    for stale in existing.values():
        if stale.is_booked:
            logger.warning(
                "Removing booked custom slot %s %s-%s for provider %s",
                d, stale.start_time, stale.end_time, provider_id,
            )
        await session.delete(stale)
    await session.flush()
    return await list_custom_slots(session, provider_id, d)


async def clear_custom_slots(session: AsyncSession, provider_id: int, d: date) -> int:
    with datastore_errors("clear custom slots"):
        result = await session.execute(
            delete(CustomTimeSlot).where(CustomTimeSlot.provider_id == provider_id, CustomTimeSlot.date == d)
        )
        await session.flush()
    return result.rowcount or 0


async def set_slot_booked(
    session: AsyncSession, provider_id: int, d: date, start_time: time, end_time: time, booked: bool
) -> int:
    """Flip the booked flag of the custom slot matching the window exactly.
    Returns rows touched; 0 when the date uses generated slots."""
    result = await session.execute(
        update(CustomTimeSlot)
        .where(
            CustomTimeSlot.provider_id == provider_id,
            CustomTimeSlot.date == d,
            CustomTimeSlot.start_time == start_time,
            CustomTimeSlot.end_time == end_time,
        )
        .values(is_booked=booked, updated_at=_utc_naive())
    )
    return result.rowcount or 0
