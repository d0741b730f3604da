import unittest
from datetime import time

from slotbook.core.errors import ConfigurationError
from slotbook.services.slot_generator import TimeWindow, generate_slots


class TestGenerateSlots(unittest.TestCase):
    def test_full_day_hourly(self):
        slots = generate_slots(time(9, 0), time(17, 0), 60)
        self.assertEqual(len(slots), 8)
        self.assertEqual(slots[0], TimeWindow(time(9, 0), time(10, 0)))
        self.assertEqual(slots[-1], TimeWindow(time(16, 0), time(17, 0)))

    def test_no_partial_trailing_slot(self):
        self.assertEqual(generate_slots(time(9, 0), time(9, 45), 60), [])
        slots = generate_slots(time(9, 0), time(10, 45), 30)
        self.assertEqual(slots[-1], TimeWindow(time(10, 0), time(10, 30)))
        self.assertEqual(len(slots), 3)

    def test_windows_are_contiguous(self):
        slots = generate_slots(time(8, 0), time(12, 0), 45)
        for prev, nxt in zip(slots, slots[1:]):
            self.assertEqual(prev.end, nxt.start)
        self.assertTrue(all(s.duration_minutes == 45 for s in slots))

    def test_empty_window(self):
        self.assertEqual(generate_slots(time(9, 0), time(9, 0), 30), [])

    def test_zero_duration_rejected(self):
        with self.assertRaises(ConfigurationError):
            generate_slots(time(9, 0), time(17, 0), 0)

    def test_negative_duration_rejected(self):
        with self.assertRaises(ConfigurationError):
            generate_slots(time(9, 0), time(17, 0), -15)

    def test_close_before_open_rejected(self):
        with self.assertRaises(ConfigurationError):
            generate_slots(time(17, 0), time(9, 0), 60)

    def test_seconds_are_dropped(self):
        slots = generate_slots(time(9, 0, 30), time(11, 0), 60)
        self.assertEqual(slots[0].start, time(9, 0))
        self.assertEqual(len(slots), 2)
