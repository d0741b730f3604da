from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_current_provider
from slotbook.api.schemas.booking import (
    BookingCancelled,
    BookingCreated,
    BookingCreateRequest,
    BookingPublic,
    BookingStatusUpdate,
    BookingUpdateRequest,
    ProviderBookingRequest,
    RebookRequest,
)
from slotbook.core.db import get_session
from slotbook.models.booking import Booking
from slotbook.models.provider import Provider
from slotbook.services import booking_lifecycle
from slotbook.services.booking_lifecycle import BookingRequest, ContactUpdate
from slotbook.services.time_format import format_time
from slotbook.services.working_hours_service import uses_12h_format

router = APIRouter(prefix="/bookings", tags=["bookings"])


def booking_to_public(booking: Booking, use_12h: bool) -> BookingPublic:
    return BookingPublic(
        id=booking.id,
        provider_id=booking.provider_id,
        date=booking.date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        start_display=format_time(booking.start_time, use_12h),
        end_display=format_time(booking.end_time, use_12h),
        client_name=booking.client_name,
        client_email=booking.client_email,
        client_phone=booking.client_phone,
        notes=booking.notes,
        status=booking.status,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


async def _public(session: AsyncSession, booking: Booking) -> BookingPublic:
    return booking_to_public(booking, await uses_12h_format(session, booking.provider_id))


@router.post("", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreateRequest,
    session: AsyncSession = Depends(get_session),
) -> BookingCreated:
    """Book a slot. The access token in the response is the client's only key."""
    booking = await booking_lifecycle.create_booking(
        session,
        BookingRequest(
            provider_id=body.provider_id,
            date=body.date,
            start_time=body.start_time,
            end_time=body.end_time,
            client_name=body.client_name,
            client_email=str(body.client_email),
            client_phone=body.client_phone,
            notes=body.notes,
        ),
    )
    return BookingCreated(booking_id=booking.id, access_token=booking.access_token)


@router.post("/provider", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_provider_booking(
    body: ProviderBookingRequest,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> BookingCreated:
    """Enter a booking on one of the current provider's own slots."""
    booking = await booking_lifecycle.create_booking(
        session,
        BookingRequest(
            provider_id=current_provider.id,
            date=body.date,
            start_time=body.start_time,
            end_time=body.end_time,
            client_name=body.client_name,
            client_email=str(body.client_email),
            client_phone=body.client_phone,
            notes=body.notes,
        ),
    )
    return BookingCreated(booking_id=booking.id, access_token=booking.access_token)


@router.get("/manage", response_model=BookingPublic)
async def get_managed_booking(
    token: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    booking = await booking_lifecycle.get_booking(session, token)
    return await _public(session, booking)


@router.patch("/manage", response_model=BookingPublic)
async def update_managed_booking(
    body: BookingUpdateRequest,
    token: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    fields_set = set(body.model_fields_set)
    update = ContactUpdate(
        client_name=body.client_name,
        client_email=str(body.client_email) if body.client_email is not None else None,
        client_phone=body.client_phone,
        notes=body.notes,
        fields_set=fields_set,
    )
    booking = await booking_lifecycle.update_booking(session, token, update)
    return await _public(session, booking)


@router.delete("/manage", response_model=BookingCancelled)
async def cancel_managed_booking(
    token: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> BookingCancelled:
    booking = await booking_lifecycle.cancel_booking(session, token)
    return BookingCancelled(message="Booking cancelled", booking=await _public(session, booking))


@router.get("", response_model=list[BookingPublic])
async def list_bookings(
    start: date | None = Query(None),
    end: date | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> list[BookingPublic]:
    bookings = await booking_lifecycle.list_provider_bookings(
        session, current_provider.id, start, end, status_filter
    )
    use_12h = await uses_12h_format(session, current_provider.id)
    return [booking_to_public(b, use_12h) for b in bookings]


@router.patch("/{booking_id}/status", response_model=BookingPublic)
async def update_booking_status(
    booking_id: int,
    body: BookingStatusUpdate,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> BookingPublic:
    booking = await booking_lifecycle.transition_status(
        session, current_provider.id, booking_id, body.status
    )
    return await _public(session, booking)


@router.post("/{booking_id}/rebook", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def rebook(
    booking_id: int,
    body: RebookRequest,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> BookingCreated:
    """Move a booking to another slot. The old booking is removed and the
    client gets a new access token."""
    contact_fields = body.model_fields_set - {"date", "start_time", "end_time"}
    update = ContactUpdate(
        client_name=body.client_name,
        client_email=str(body.client_email) if body.client_email is not None else None,
        client_phone=body.client_phone,
        notes=body.notes,
        fields_set=contact_fields,
    )
    booking = await booking_lifecycle.rebook_booking(
        session, current_provider.id, booking_id, body.date, body.start_time, body.end_time, update
    )
    return BookingCreated(booking_id=booking.id, access_token=booking.access_token)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    current_provider: Provider = Depends(get_current_provider),
) -> None:
    """Remove a booking entirely, freeing its slot."""
    await booking_lifecycle.delete_booking(session, current_provider.id, booking_id)
