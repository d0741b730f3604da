"""Shared fixtures for the test-suite: an in-memory SQLite database per test."""
import unittest
from datetime import date, time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import slotbook.models  # noqa: F401 - register tables
from slotbook.models.booking import Booking
from slotbook.models.provider import Provider
from slotbook.services.working_hours_service import populate_defaults

# 2024-06-17 is a Monday
MONDAY = date(2024, 6, 17)
SATURDAY = date(2024, 6, 22)
SUNDAY = date(2024, 6, 23)
NINE = time(9, 0)
TEN = time(10, 0)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    def create_engine(self) -> AsyncEngine:
        return create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    async def asyncSetUp(self):
        self.engine = self.create_engine()
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self.session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.session = self.session_maker()

    async def asyncTearDown(self):
        await self.session.close()
        await self.engine.dispose()

    async def make_provider(self, email="provider@example.com", defaults=True) -> int:
        provider = Provider(email=email, full_name="Test Provider", hashed_password="not-a-hash")
        self.session.add(provider)
        await self.session.flush()
        provider_id = provider.id
        if defaults:
            await populate_defaults(self.session, provider_id)
        await self.session.commit()
        return provider_id

    async def count_bookings(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Booking))
        return result.scalar_one()


class FakeHolidayProvider:
    """In-process stand-in for the public-holiday API."""

    def __init__(self, holidays):
        self.holidays = holidays
        self.calls = []

    async def holidays_in_range(self, start, end, region):
        self.calls.append((start, end, region))
        return [h for h in self.holidays if start <= h.date <= end]

    async def is_non_working_date(self, d, region):
        return bool(await self.holidays_in_range(d, d, region))
