import unittest
from datetime import time

from slotbook.services.time_format import format_time


class TestFormatTime(unittest.TestCase):
    def test_24h(self):
        self.assertEqual(format_time(time(14, 30), False), "14:30")
        self.assertEqual(format_time(time(9, 5), False), "09:05")

    def test_12h(self):
        self.assertEqual(format_time(time(14, 30), True), "2:30 PM")
        self.assertEqual(format_time(time(9, 0), True), "9:00 AM")

    def test_12h_noon_and_midnight(self):
        self.assertEqual(format_time(time(12, 0), True), "12:00 PM")
        self.assertEqual(format_time(time(0, 15), True), "12:15 AM")
