"""Tests for booking creation, client self-service and provider status changes."""
from datetime import UTC, datetime, time
from unittest import mock

from helpers import MONDAY, NINE, SUNDAY, TEN, DatabaseTestCase
from sqlalchemy import select

from slotbook.core.errors import (
    AlreadyCancelledError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from slotbook.models.availability import CustomTimeSlot
from slotbook.models.booking import BookingStatus
from slotbook.services import availability_service, booking_lifecycle, time_slot_service
from slotbook.services.availability_service import DayAvailability, SlotAvailability, SlotBasis
from slotbook.services.booking_lifecycle import BookingRequest, ContactUpdate
from slotbook.services.time_slot_service import CustomSlotEntry
from slotbook.services.working_hours_service import save_availability_settings


def _request(provider_id, start=NINE, end=TEN, d=MONDAY, **overrides):
    fields = dict(
        provider_id=provider_id,
        date=d,
        start_time=start,
        end_time=end,
        client_name="Jane Doe",
        client_email="jane@example.com",
        client_phone="+1 (555) 010-0000",
        notes=None,
    )
    fields.update(overrides)
    return BookingRequest(**fields)


class TestCreateBooking(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider()

    async def test_create_pending_booking(self):
        booking = await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        self.assertIsNotNone(booking.id)
        self.assertEqual(booking.status, BookingStatus.PENDING.value)
        self.assertGreaterEqual(len(booking.access_token), 32)
        self.assertEqual(booking.client_phone, "+1 (555) 010-0000")

    async def test_tokens_are_unique(self):
        first = await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        second = await booking_lifecycle.create_booking(
            self.session, _request(self.provider_id, start=TEN, end=time(11, 0))
        )
        self.assertNotEqual(first.access_token, second.access_token)

    async def test_window_not_offered_is_conflict(self):
        with self.assertRaises(ConflictError):
            await booking_lifecycle.create_booking(
                self.session, _request(self.provider_id, start=time(9, 30), end=time(10, 30))
            )
        self.assertEqual(await self.count_bookings(), 0)

    async def test_non_working_day_is_conflict(self):
        with self.assertRaises(ConflictError):
            await booking_lifecycle.create_booking(self.session, _request(self.provider_id, d=SUNDAY))

    async def test_taken_slot_is_conflict(self):
        await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        with self.assertRaises(ConflictError):
            await booking_lifecycle.create_booking(
                self.session, _request(self.provider_id, client_name="John Roe")
            )
        self.assertEqual(await self.count_bookings(), 1)

    async def test_concurrent_create_loses_on_unique_index(self):
        """A stale availability read still cannot double-book the slot."""
        await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        await self.session.commit()

        stale = DayAvailability(
            MONDAY, True, (SlotAvailability(NINE, TEN, is_available=True),), SlotBasis.GENERATED
        )
        with mock.patch.object(availability_service, "resolve", mock.AsyncMock(return_value=stale)):
            with self.assertRaises(ConflictError):
                await booking_lifecycle.create_booking(
                    self.session, _request(self.provider_id, client_name="John Roe")
                )
        self.assertEqual(await self.count_bookings(), 1)

    async def test_unknown_provider(self):
        with self.assertRaises(NotFoundError):
            await booking_lifecycle.create_booking(self.session, _request(9999))

    async def test_start_after_end_rejected(self):
        with self.assertRaises(ValidationError):
            await booking_lifecycle.create_booking(self.session, _request(self.provider_id, start=TEN, end=NINE))

    async def test_invalid_contact_rejected(self):
        cases = [
            {"client_name": "J"},
            {"client_name": "R2-D2"},
            {"client_email": "not-an-email"},
            {"client_phone": "call me"},
            {"notes": "x" * 501},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    await booking_lifecycle.create_booking(
                        self.session, _request(self.provider_id, **overrides)
                    )
        self.assertEqual(await self.count_bookings(), 0)

    async def test_custom_slot_marked_booked(self):
        await time_slot_service.replace_custom_slots(
            self.session, self.provider_id, MONDAY, [CustomSlotEntry(NINE, TEN), CustomSlotEntry(TEN, time(11, 0))]
        )
        await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        slots = await time_slot_service.list_custom_slots(self.session, self.provider_id, MONDAY)
        self.assertEqual([s.is_booked for s in slots], [True, False])


class TestClientSelfService(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider()
        booking = await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        self.booking_id = booking.id
        self.token = booking.access_token

    async def test_get_by_token(self):
        booking = await booking_lifecycle.get_booking(self.session, self.token)
        self.assertEqual(booking.id, self.booking_id)

    async def test_missing_token(self):
        with self.assertRaises(ValidationError):
            await booking_lifecycle.get_booking(self.session, "")
        with self.assertRaises(ValidationError):
            await booking_lifecycle.get_booking(self.session, None)

    async def test_unknown_token(self):
        with self.assertRaises(NotFoundError):
            await booking_lifecycle.get_booking(self.session, "no-such-token")

    async def test_update_only_given_fields(self):
        booking = await booking_lifecycle.update_booking(
            self.session,
            self.token,
            ContactUpdate(client_name="Janet Doe", fields_set={"client_name"}),
        )
        self.assertEqual(booking.client_name, "Janet Doe")
        self.assertEqual(booking.client_email, "jane@example.com")
        self.assertEqual(booking.client_phone, "+1 (555) 010-0000")

    async def test_update_can_clear_notes(self):
        await booking_lifecycle.update_booking(
            self.session, self.token, ContactUpdate(notes="Parking?", fields_set={"notes"})
        )
        booking = await booking_lifecycle.update_booking(
            self.session, self.token, ContactUpdate(notes=None, fields_set={"notes"})
        )
        self.assertIsNone(booking.notes)

    async def test_update_invalid_email_persists_nothing(self):
        with self.assertRaises(ValidationError):
            await booking_lifecycle.update_booking(
                self.session,
                self.token,
                ContactUpdate(client_name="Janet Doe", client_email="bad", fields_set={"client_name", "client_email"}),
            )
        booking = await booking_lifecycle.get_booking(self.session, self.token)
        self.assertEqual(booking.client_name, "Jane Doe")

    async def test_update_completed_booking_refused(self):
        await booking_lifecycle.transition_status(self.session, self.provider_id, self.booking_id, "confirmed")
        await booking_lifecycle.transition_status(
            self.session,
            self.provider_id,
            self.booking_id,
            "completed",
            now=datetime(2024, 6, 17, 10, 0, tzinfo=UTC),
        )
        with self.assertRaises(InvalidStateError):
            await booking_lifecycle.update_booking(
                self.session, self.token, ContactUpdate(client_name="Janet Doe", fields_set={"client_name"})
            )
        booking = await booking_lifecycle.get_booking(self.session, self.token)
        self.assertEqual(booking.client_name, "Jane Doe")

    async def test_update_cancelled_booking_refused(self):
        await booking_lifecycle.cancel_booking(self.session, self.token)
        with self.assertRaises(InvalidStateError):
            await booking_lifecycle.update_booking(
                self.session, self.token, ContactUpdate(notes="late", fields_set={"notes"})
            )

    async def test_cancel(self):
        booking = await booking_lifecycle.cancel_booking(self.session, self.token)
        self.assertEqual(booking.status, BookingStatus.CANCELLED.value)

    async def test_cancel_twice_has_no_side_effects(self):
        booking = await booking_lifecycle.cancel_booking(self.session, self.token)
        cancelled_at = booking.updated_at
        with self.assertRaises(AlreadyCancelledError):
            await booking_lifecycle.cancel_booking(self.session, self.token)
        booking = await booking_lifecycle.get_booking(self.session, self.token)
        self.assertEqual(booking.updated_at, cancelled_at)
        self.assertEqual(booking.status, BookingStatus.CANCELLED.value)

    async def test_cancel_completed_refused(self):
        await booking_lifecycle.transition_status(self.session, self.provider_id, self.booking_id, "confirmed")
        await booking_lifecycle.transition_status(
            self.session,
            self.provider_id,
            self.booking_id,
            "completed",
            now=datetime(2024, 6, 17, 11, 0, tzinfo=UTC),
        )
        with self.assertRaises(InvalidStateError) as ctx:
            await booking_lifecycle.cancel_booking(self.session, self.token)
        self.assertNotIsInstance(ctx.exception, AlreadyCancelledError)

    async def test_slot_can_be_rebooked_after_cancel(self):
        await booking_lifecycle.cancel_booking(self.session, self.token)
        booking = await booking_lifecycle.create_booking(
            self.session, _request(self.provider_id, client_name="John Roe")
        )
        self.assertEqual(booking.status, BookingStatus.PENDING.value)


class TestCustomSlotRelease(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider()
        await time_slot_service.replace_custom_slots(
            self.session, self.provider_id, MONDAY, [CustomSlotEntry(NINE, TEN)]
        )
        booking = await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        self.booking_id = booking.id
        self.token = booking.access_token

    async def _is_booked(self) -> bool:
        result = await self.session.execute(
            select(CustomTimeSlot.is_booked).where(CustomTimeSlot.provider_id == self.provider_id)
        )
        return result.scalar_one()

    async def test_cancel_releases_custom_slot(self):
        await booking_lifecycle.cancel_booking(self.session, self.token)
        self.assertFalse(await self._is_booked())
        day = await availability_service.resolve(self.session, self.provider_id, MONDAY)
        self.assertTrue(day.slots[0].is_available)

    async def test_no_show_releases_custom_slot(self):
        await booking_lifecycle.transition_status(
            self.session,
            self.provider_id,
            self.booking_id,
            "no-show",
            now=datetime(2024, 6, 17, 9, 30, tzinfo=UTC),
        )
        self.assertFalse(await self._is_booked())

    async def test_confirm_keeps_custom_slot_booked(self):
        await booking_lifecycle.transition_status(self.session, self.provider_id, self.booking_id, "confirmed")
        self.assertTrue(await self._is_booked())

    async def test_late_cancel_keeps_slot_held_by_newer_booking(self):
        """A no-show is cancelled after someone else booked the freed slot."""
        await booking_lifecycle.transition_status(
            self.session,
            self.provider_id,
            self.booking_id,
            "no-show",
            now=datetime(2024, 6, 17, 9, 30, tzinfo=UTC),
        )
        await booking_lifecycle.create_booking(self.session, _request(self.provider_id, client_name="John Roe"))
        self.assertTrue(await self._is_booked())

        await booking_lifecycle.cancel_booking(self.session, self.token)
        self.assertTrue(await self._is_booked())
        day = await availability_service.resolve(self.session, self.provider_id, MONDAY)
        self.assertFalse(day.slots[0].is_available)

    async def test_delete_frees_custom_slot(self):
        await booking_lifecycle.delete_booking(self.session, self.provider_id, self.booking_id)
        self.assertFalse(await self._is_booked())
        self.assertEqual(await self.count_bookings(), 0)


class TestProviderBookingActions(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider()
        booking = await booking_lifecycle.create_booking(
            self.session, _request(self.provider_id, notes="Bring the forms")
        )
        self.booking_id = booking.id
        self.token = booking.access_token

    async def test_delete_frees_generated_slot(self):
        await booking_lifecycle.delete_booking(self.session, self.provider_id, self.booking_id)
        day = await availability_service.resolve(self.session, self.provider_id, MONDAY)
        self.assertTrue(day.find_slot(NINE, TEN).is_available)
        with self.assertRaises(NotFoundError):
            await booking_lifecycle.get_booking(self.session, self.token)

    async def test_delete_other_providers_booking_not_found(self):
        other_id = await self.make_provider("other@example.com")
        with self.assertRaises(NotFoundError):
            await booking_lifecycle.delete_booking(self.session, other_id, self.booking_id)
        self.assertEqual(await self.count_bookings(), 1)

    async def test_rebook_moves_client_to_new_slot(self):
        new = await booking_lifecycle.rebook_booking(
            self.session, self.provider_id, self.booking_id, MONDAY, TEN, time(11, 0)
        )
        self.assertNotEqual(new.id, self.booking_id)
        self.assertNotEqual(new.access_token, self.token)
        self.assertEqual((new.client_name, new.notes), ("Jane Doe", "Bring the forms"))
        self.assertEqual(new.status, BookingStatus.PENDING.value)
        self.assertEqual(await self.count_bookings(), 1)

        day = await availability_service.resolve(self.session, self.provider_id, MONDAY)
        self.assertTrue(day.find_slot(NINE, TEN).is_available)
        self.assertTrue(day.find_slot(TEN, time(11, 0)).is_booked)

    async def test_rebook_applies_contact_changes(self):
        update = ContactUpdate(notes=None, client_name="Jane Smith", fields_set={"notes", "client_name"})
        new = await booking_lifecycle.rebook_booking(
            self.session, self.provider_id, self.booking_id, MONDAY, TEN, time(11, 0), update
        )
        self.assertEqual(new.client_name, "Jane Smith")
        self.assertIsNone(new.notes)
        self.assertEqual(new.client_email, "jane@example.com")

    async def test_rebook_onto_taken_slot_keeps_old_booking(self):
        await booking_lifecycle.create_booking(
            self.session, _request(self.provider_id, start=TEN, end=time(11, 0), client_name="John Roe")
        )
        with self.assertRaises(ConflictError):
            await booking_lifecycle.rebook_booking(
                self.session, self.provider_id, self.booking_id, MONDAY, TEN, time(11, 0)
            )
        booking = await booking_lifecycle.get_booking(self.session, self.token)
        self.assertEqual(booking.status, BookingStatus.PENDING.value)


class TestTransitionStatus(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.provider_id = await self.make_provider()
        booking = await booking_lifecycle.create_booking(self.session, _request(self.provider_id))
        self.booking_id = booking.id
        self.token = booking.access_token

    async def _transition(self, status, now=None):
        return await booking_lifecycle.transition_status(
            self.session, self.provider_id, self.booking_id, status, now=now
        )

    async def test_confirm(self):
        booking = await self._transition("confirmed")
        self.assertEqual(booking.status, "confirmed")

    async def test_pending_cannot_complete(self):
        with self.assertRaises(InvalidStateError):
            await self._transition("completed", now=datetime(2024, 6, 18, tzinfo=UTC))

    async def test_cannot_go_back_to_pending(self):
        await self._transition("confirmed")
        with self.assertRaises(InvalidStateError):
            await self._transition("pending")

    async def test_complete_before_start_rejected(self):
        await self._transition("confirmed")
        with self.assertRaises(ValidationError):
            await self._transition("completed", now=datetime(2024, 6, 17, 8, 59, tzinfo=UTC))

    async def test_no_show_grace_period(self):
        with self.assertRaises(ValidationError):
            await self._transition("no-show", now=datetime(2024, 6, 17, 9, 10, tzinfo=UTC))
        booking = await self._transition("no-show", now=datetime(2024, 6, 17, 9, 15, tzinfo=UTC))
        self.assertEqual(booking.status, "no-show")

    async def test_timing_uses_provider_timezone(self):
        """09:00 in New York is 13:00 UTC in June."""
        await save_availability_settings(self.session, self.provider_id, 60, timezone="America/New_York")
        await self._transition("confirmed")
        with self.assertRaises(ValidationError):
            await self._transition("completed", now=datetime(2024, 6, 17, 12, 0, tzinfo=UTC))
        booking = await self._transition("completed", now=datetime(2024, 6, 17, 13, 0, tzinfo=UTC))
        self.assertEqual(booking.status, "completed")

    async def test_no_show_is_final_for_provider(self):
        await self._transition("no-show", now=datetime(2024, 6, 17, 12, 0, tzinfo=UTC))
        with self.assertRaises(InvalidStateError):
            await self._transition("confirmed")

    async def test_client_may_cancel_no_show(self):
        await self._transition("no-show", now=datetime(2024, 6, 17, 12, 0, tzinfo=UTC))
        booking = await booking_lifecycle.cancel_booking(self.session, self.token)
        self.assertEqual(booking.status, "cancelled")

    async def test_cancelled_reports_already_cancelled(self):
        await self._transition("cancelled")
        with self.assertRaises(AlreadyCancelledError):
            await self._transition("confirmed")

    async def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            await self._transition("archived")

    async def test_other_providers_booking_not_found(self):
        other_id = await self.make_provider("other@example.com")
        with self.assertRaises(NotFoundError):
            await booking_lifecycle.transition_status(self.session, other_id, self.booking_id, "confirmed")

    async def test_list_provider_bookings_filters(self):
        await booking_lifecycle.create_booking(
            self.session, _request(self.provider_id, start=TEN, end=time(11, 0), client_name="John Roe")
        )
        await self._transition("confirmed")
        all_bookings = await booking_lifecycle.list_provider_bookings(self.session, self.provider_id)
        self.assertEqual([b.start_time for b in all_bookings], [NINE, TEN])
        confirmed = await booking_lifecycle.list_provider_bookings(
            self.session, self.provider_id, status="confirmed"
        )
        self.assertEqual([b.id for b in confirmed], [self.booking_id])
        with self.assertRaises(ValidationError):
            await booking_lifecycle.list_provider_bookings(self.session, self.provider_id, status="bogus")
