from datetime import date, datetime, time

from pydantic import BaseModel, EmailStr


class BookingCreateRequest(BaseModel):
    provider_id: int
    date: date
    start_time: time
    end_time: time
    client_name: str
    client_email: EmailStr
    client_phone: str | None = None
    notes: str | None = None


class ProviderBookingRequest(BaseModel):
    """A booking the provider enters on a client's behalf; always their own slot."""

    date: date
    start_time: time
    end_time: time
    client_name: str
    client_email: EmailStr
    client_phone: str | None = None
    notes: str | None = None


class RebookRequest(BaseModel):
    date: date
    start_time: time
    end_time: time
    client_name: str | None = None
    client_email: EmailStr | None = None
    client_phone: str | None = None
    notes: str | None = None


class BookingCreated(BaseModel):
    """The only payload that carries the access token."""

    booking_id: int
    access_token: str


class BookingUpdateRequest(BaseModel):
    client_name: str | None = None
    client_email: EmailStr | None = None
    client_phone: str | None = None
    notes: str | None = None


class BookingStatusUpdate(BaseModel):
    status: str


class BookingPublic(BaseModel):
    id: int
    provider_id: int
    date: date
    start_time: time
    end_time: time
    start_display: str
    end_display: str
    client_name: str
    client_email: str
    client_phone: str | None = None
    notes: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime


class BookingCancelled(BaseModel):
    message: str
    booking: BookingPublic
