from datetime import UTC, date, datetime, time

from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class WorkingHours(SQLModel, table=True):
    """Weekly default window. day_of_week: 1=Monday .. 7=Sunday."""

    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", name="uq_working_hours_provider_day"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_working_hours_day_of_week"),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    day_of_week: int
    start_time: time
    end_time: time
    is_working: bool = True
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AvailabilityException(SQLModel, table=True):
    __tablename__ = "availability_exceptions"
    __table_args__ = (
        UniqueConstraint("provider_id", "date", name="uq_availability_exceptions_provider_date"),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    date: date
    is_available: bool = False
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)


class CustomTimeSlot(SQLModel, table=True):
    """Explicit slot for one date. Any row for a date replaces generated slots."""

    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint(
            "provider_id", "date", "start_time", "end_time", name="uq_time_slots_provider_window"
        ),
        Index("ix_time_slots_provider_id_date", "provider_id", "date"),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id")
    date: date
    start_time: time
    end_time: time
    is_available: bool = True
    is_booked: bool = False
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AvailabilitySettings(SQLModel, table=True):
    __tablename__ = "availability_settings"
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", unique=True, index=True)
    slot_duration_minutes: int = 60
    time_format_12h: bool = False
    timezone: str = "UTC"
    updated_at: datetime = Field(default_factory=_utc_naive_now)
