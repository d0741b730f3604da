from datetime import time
from unittest import mock

from helpers import NINE, DatabaseTestCase
from sqlalchemy.exc import OperationalError

from slotbook.core.errors import UnavailableError, ValidationError
from slotbook.services import working_hours_service
from slotbook.services.working_hours_service import WorkingHoursEntry


class TestWorkingHours(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider(defaults=False)

    async def test_populate_defaults(self):
        avail_settings, hours = await working_hours_service.populate_defaults(self.session, self.provider_id)
        self.assertEqual(avail_settings.slot_duration_minutes, 60)
        self.assertEqual(avail_settings.timezone, "UTC")
        self.assertEqual([h.day_of_week for h in hours], list(range(1, 8)))
        self.assertEqual((hours[0].start_time, hours[0].end_time), (NINE, time(17, 0)))
        self.assertFalse(hours[5].is_working)

    async def test_populate_defaults_twice_keeps_one_row_per_day(self):
        await working_hours_service.populate_defaults(self.session, self.provider_id)
        _, hours = await working_hours_service.populate_defaults(self.session, self.provider_id)
        self.assertEqual(len(hours), 7)

    async def test_save_updates_existing_day(self):
        await working_hours_service.populate_defaults(self.session, self.provider_id)
        hours = await working_hours_service.save_working_hours(
            self.session, self.provider_id, [WorkingHoursEntry(1, time(7, 0), time(11, 0))]
        )
        self.assertEqual(hours[0].start_time, time(7, 0))
        self.assertEqual(hours[1].start_time, NINE)

    async def test_start_after_end_rejected(self):
        with self.assertRaises(ValidationError):
            await working_hours_service.save_working_hours(
                self.session, self.provider_id, [WorkingHoursEntry(1, time(17, 0), NINE)]
            )

    async def test_non_working_day_may_have_any_window(self):
        hours = await working_hours_service.save_working_hours(
            self.session, self.provider_id, [WorkingHoursEntry(6, time(17, 0), NINE, is_working=False)]
        )
        self.assertEqual(len(hours), 1)

    async def test_duplicate_day_rejected(self):
        with self.assertRaises(ValidationError):
            await working_hours_service.save_working_hours(
                self.session,
                self.provider_id,
                [WorkingHoursEntry(2, NINE, time(12, 0)), WorkingHoursEntry(2, time(13, 0), time(17, 0))],
            )

    async def test_invalid_day_rejected(self):
        with self.assertRaises(ValidationError):
            await working_hours_service.save_working_hours(
                self.session, self.provider_id, [WorkingHoursEntry(0, NINE, time(12, 0))]
            )

    async def test_settings_validation(self):
        with self.assertRaises(ValidationError):
            await working_hours_service.save_availability_settings(self.session, self.provider_id, 0)
        with self.assertRaises(ValidationError):
            await working_hours_service.save_availability_settings(self.session, self.provider_id, 1441)
        with self.assertRaises(ValidationError):
            await working_hours_service.save_availability_settings(
                self.session, self.provider_id, 30, timezone="Nowhere/Special"
            )

    async def test_settings_upsert(self):
        await working_hours_service.save_availability_settings(self.session, self.provider_id, 30)
        row = await working_hours_service.save_availability_settings(
            self.session, self.provider_id, 45, time_format_12h=True, timezone="Europe/Berlin"
        )
        self.assertEqual((row.slot_duration_minutes, row.time_format_12h, row.timezone), (45, True, "Europe/Berlin"))
        self.assertTrue(await working_hours_service.uses_12h_format(self.session, self.provider_id))


class TestDatastoreFailures(DatabaseTestCase):
    """A lost connection surfaces as UnavailableError, not a raw driver error."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider(defaults=False)
        self.failure = OperationalError("UPDATE", {}, Exception("server closed the connection"))

    async def test_save_settings(self):
        with mock.patch.object(working_hours_service, "upsert", mock.AsyncMock(side_effect=self.failure)):
            with self.assertRaises(UnavailableError):
                await working_hours_service.save_availability_settings(self.session, self.provider_id, 30)

    async def test_save_working_hours(self):
        with mock.patch.object(working_hours_service, "upsert", mock.AsyncMock(side_effect=self.failure)):
            with self.assertRaises(UnavailableError):
                await working_hours_service.save_working_hours(
                    self.session, self.provider_id, [WorkingHoursEntry(1, NINE, time(17, 0))]
                )

    async def test_reads(self):
        with mock.patch.object(self.session, "execute", mock.AsyncMock(side_effect=self.failure)):
            with self.assertRaises(UnavailableError):
                await working_hours_service.list_working_hours(self.session, self.provider_id)
            with self.assertRaises(UnavailableError):
                await working_hours_service.uses_12h_format(self.session, self.provider_id)
