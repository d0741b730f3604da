"""Booking state machine.

    pending   -> confirmed | cancelled | no-show
    confirmed -> completed | cancelled | no-show

cancelled and completed are terminal. Slot exclusivity for pending/confirmed
bookings is enforced by the ``uq_bookings_active_slot`` partial unique index;
the availability check before insert only gives a friendlier early answer.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from zoneinfo import ZoneInfo

from slotbook.core.config import settings
from slotbook.core.db import datastore_errors
from slotbook.core.errors import (
    AlreadyCancelledError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from slotbook.core.security import generate_booking_token
from slotbook.models.booking import ACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus
from slotbook.models.provider import Provider
from slotbook.services import availability_service, booking_service, time_slot_service, working_hours_service
from slotbook.services.availability_service import SlotBasis

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

CONTACT_FIELDS = ("client_name", "client_email", "client_phone", "notes")

_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_STRIP_RE = re.compile(r"[\s\-()]")
MAX_NOTES_LENGTH = 500


@dataclass
class BookingRequest:
    provider_id: int
    date: date
    start_time: time
    end_time: time
    client_name: str
    client_email: str
    client_phone: str | None = None
    notes: str | None = None


@dataclass
class ContactUpdate:
    """Only fields listed in ``fields_set`` are applied."""

    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    notes: str | None = None
    fields_set: set[str] = field(default_factory=set)

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in CONTACT_FIELDS if name in self.fields_set}


def _utc_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def validate_contact(changes: dict) -> dict:
    """Validate and normalize client contact fields. Raises ValidationError."""
    cleaned = dict(changes)
    if "client_name" in cleaned:
        name = (cleaned["client_name"] or "").strip()
        if not 2 <= len(name) <= 100:
            raise ValidationError("Name must be between 2 and 100 characters")
        if not _NAME_RE.match(name):
            raise ValidationError("Name can only contain letters, spaces, hyphens, and apostrophes")
        cleaned["client_name"] = name
    if "client_email" in cleaned:
        email = (cleaned["client_email"] or "").strip()
        if not 5 <= len(email) <= 100 or not _EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email address")
        cleaned["client_email"] = email
    if "client_phone" in cleaned:
        phone = (cleaned["client_phone"] or "").strip()
        if phone and not _PHONE_RE.match(_PHONE_STRIP_RE.sub("", phone)):
            raise ValidationError("Please enter a valid phone number")
        cleaned["client_phone"] = phone or None
    if "notes" in cleaned:
        notes = cleaned["notes"] or None
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes must be less than {MAX_NOTES_LENGTH} characters")
        cleaned["notes"] = notes
    return cleaned


def _require_token(token: str | None) -> str:
    if not token or not token.strip():
        raise ValidationError("Access token is required")
    return token.strip()


async def _get_by_token(session: AsyncSession, token: str | None) -> Booking:
    with datastore_errors("load booking"):
        booking = await booking_service.get_booking_by_token(session, _require_token(token))
    if booking is None:
        raise NotFoundError("Booking not found or invalid access token")
    return booking


async def _sync_slot_occupancy(session: AsyncSession, provider_id: int, d: date, start: time, end: time) -> None:
    """Mark the custom slot booked while any pending/confirmed booking holds it."""
    # a write failure here propagates and fails the whole status change
    with datastore_errors("update slot occupancy"):
        occupied = await booking_service.slot_has_active_booking(session, provider_id, d, start, end)
        await time_slot_service.set_slot_booked(session, provider_id, d, start, end, occupied)


async def _get_for_provider(session: AsyncSession, provider_id: int, booking_id: int) -> Booking:
    with datastore_errors("load booking"):
        booking = await booking_service.get_booking_for_provider(session, provider_id, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


async def create_booking(session: AsyncSession, request: BookingRequest) -> Booking:
    """Place a pending booking on an available slot. Raises ConflictError if the
    slot is not offered, already taken, or taken concurrently."""
    contact = validate_contact(
        {
            "client_name": request.client_name,
            "client_email": request.client_email,
            "client_phone": request.client_phone,
            "notes": request.notes,
        }
    )
    start = request.start_time.replace(second=0, microsecond=0)
    end = request.end_time.replace(second=0, microsecond=0)
    if start >= end:
        raise ValidationError("Start time must be before end time")

    with datastore_errors("create booking"):
        provider = await session.get(Provider, request.provider_id)
    if provider is None:
        raise NotFoundError("Provider not found")

    day = await availability_service.resolve(session, request.provider_id, request.date)
    slot = day.find_slot(start, end)
    if slot is None or not slot.is_available:
        raise ConflictError()

    now = _utc_naive()
    booking = Booking(
        provider_id=request.provider_id,
        date=request.date,
        start_time=start,
        end_time=end,
        status=BookingStatus.PENDING.value,
        access_token=generate_booking_token(),
        created_at=now,
        updated_at=now,
        **contact,
    )
    session.add(booking)
    try:
        with datastore_errors("create booking"):
            await session.flush()
    except IntegrityError as e:
        await session.rollback()
        logger.info(
            "Slot %s %s-%s for provider %s was taken concurrently",
            request.date, start, end, request.provider_id,
        )
        raise ConflictError() from e

    if day.basis == SlotBasis.CUSTOM:
        await _sync_slot_occupancy(session, booking.provider_id, booking.date, start, end)
    await session.refresh(booking)
    logger.info("Booking %s created for provider %s on %s %s", booking.id, booking.provider_id, booking.date, start)
    return booking


async def get_booking(session: AsyncSession, token: str | None) -> Booking:
    return await _get_by_token(session, token)


async def update_booking(session: AsyncSession, token: str | None, update: ContactUpdate) -> Booking:
    booking = await _get_by_token(session, token)
    if booking.status not in ACTIVE_STATUSES:
        raise InvalidStateError(f"Cannot update {booking.status} bookings")
    changes = validate_contact(update.changes())
    if not changes:
        return booking
    for name, value in changes.items():
        setattr(booking, name, value)
    booking.updated_at = _utc_naive()
    session.add(booking)
    with datastore_errors("update booking"):
        await session.flush()
    return booking


async def cancel_booking(session: AsyncSession, token: str | None) -> Booking:
    booking = await _get_by_token(session, token)
    if booking.status == BookingStatus.CANCELLED.value:
        raise AlreadyCancelledError()
    if booking.status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Cannot cancel {booking.status} bookings")
    booking.status = BookingStatus.CANCELLED.value
    booking.updated_at = _utc_naive()
    session.add(booking)
    with datastore_errors("cancel booking"):
        await session.flush()
    await _sync_slot_occupancy(session, booking.provider_id, booking.date, booking.start_time, booking.end_time)
    logger.info("Booking %s cancelled by client", booking.id)
    return booking


def _check_timing(booking: Booking, new_status: BookingStatus, tz: ZoneInfo, now: datetime) -> None:
    starts_at = datetime.combine(booking.date, booking.start_time, tzinfo=tz)
    if new_status == BookingStatus.COMPLETED and now < starts_at:
        raise ValidationError("Cannot mark as completed before the appointment start time.")
    if new_status == BookingStatus.NO_SHOW:
        grace = timedelta(minutes=settings.no_show_grace_minutes)
        if now < starts_at + grace:
            raise ValidationError(
                f"Cannot mark as no-show until {settings.no_show_grace_minutes} minutes after the start time."
            )


async def transition_status(
    session: AsyncSession,
    provider_id: int,
    booking_id: int,
    new_status: str,
    now: datetime | None = None,
) -> Booking:
    """Provider-side status change (confirm, complete, cancel, mark no-show)."""
    try:
        target = BookingStatus(new_status)
    except ValueError as e:
        raise ValidationError(f"Unknown booking status: {new_status}") from e

    booking = await _get_for_provider(session, provider_id, booking_id)
    current = BookingStatus(booking.status)
    if current == BookingStatus.CANCELLED:
        raise AlreadyCancelledError()
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateError(f"Cannot change booking from {current.value} to {target.value}")

    if target in (BookingStatus.COMPLETED, BookingStatus.NO_SHOW):
        now = now or datetime.now(UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        with datastore_errors("load provider timezone"):
            tz = await working_hours_service.provider_timezone(session, provider_id)
        _check_timing(booking, target, tz, now)

    booking.status = target.value
    booking.updated_at = _utc_naive()
    session.add(booking)
    with datastore_errors("update booking status"):
        await session.flush()
    await _sync_slot_occupancy(session, provider_id, booking.date, booking.start_time, booking.end_time)
    logger.info("Booking %s: %s -> %s", booking.id, current.value, target.value)
    return booking


async def list_provider_bookings(
    session: AsyncSession,
    provider_id: int,
    start: date | None = None,
    end: date | None = None,
    status: str | None = None,
) -> list[Booking]:
    with datastore_errors("list bookings"):
        return await booking_service.list_bookings_for_provider(session, provider_id, start, end, status)


async def delete_booking(session: AsyncSession, provider_id: int, booking_id: int) -> None:
    """Remove a booking outright. Its slot is freed unless another live booking holds it."""
    booking = await _get_for_provider(session, provider_id, booking_id)
    window = (booking.date, booking.start_time, booking.end_time)
    with datastore_errors("delete booking"):
        await session.delete(booking)
        await session.flush()
    await _sync_slot_occupancy(session, provider_id, *window)
    logger.info("Booking %s deleted by provider %s", booking_id, provider_id)


async def rebook_booking(
    session: AsyncSession,
    provider_id: int,
    booking_id: int,
    d: date,
    start_time: time,
    end_time: time,
    update: ContactUpdate | None = None,
) -> Booking:
    """Move a client to a new slot.

    The replacement is created first, with the old booking's contact details
    unless overridden, and only then is the old booking deleted. A conflict on
    the new slot leaves the old booking in place.
    """
    old = await _get_for_provider(session, provider_id, booking_id)
    request = BookingRequest(
        provider_id=provider_id,
        date=d,
        start_time=start_time,
        end_time=end_time,
        client_name=old.client_name,
        client_email=old.client_email,
        client_phone=old.client_phone,
        notes=old.notes,
    )
    if update is not None:
        for name, value in update.changes().items():
            setattr(request, name, value)
    booking = await create_booking(session, request)
    await delete_booking(session, provider_id, booking_id)
    logger.info("Booking %s rebooked as %s", booking_id, booking.id)
    return booking
