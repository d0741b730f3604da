from datetime import UTC, date, datetime, time
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


# Statuses that occupy a slot
ACTIVE_STATUSES: tuple[str, ...] = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
TERMINAL_STATUSES: tuple[str, ...] = (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value)

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"
_ACTIVE_SLOT_FILTER = text("status IN ('pending', 'confirmed')")


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # at most one pending/confirmed booking per slot, enforced by the database
        Index(
            ACTIVE_SLOT_INDEX,
            "provider_id",
            "date",
            "start_time",
            "end_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_FILTER,
            sqlite_where=_ACTIVE_SLOT_FILTER,
        ),
        Index("ix_bookings_provider_id_date", "provider_id", "date"),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id")
    date: date
    start_time: time
    end_time: time
    client_name: str
    client_email: str
    client_phone: str | None = None
    notes: str | None = None
    status: str = Field(default=BookingStatus.PENDING.value, max_length=16, index=True)
    access_token: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)
