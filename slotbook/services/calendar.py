"""Day-of-week normalization.

Stored schedules use 1=Monday .. 7=Sunday. Python's ``date.weekday()`` is
0=Monday and JavaScript/SQL ``DOW`` is 0=Sunday; every conversion between
those and the stored index goes through this module.
"""
from collections.abc import Iterator
from datetime import date, timedelta

from slotbook.core.errors import ValidationError

MONDAY = 1
SUNDAY = 7

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def day_of_week(d: date) -> int:
    """Canonical index for a date: 1=Monday .. 7=Sunday."""
    return d.isoweekday()


def normalize_day_index(value: int, sunday_first: bool = False) -> int:
    """Convert an incoming day index to the canonical one.

    With ``sunday_first`` the input is 0=Sunday .. 6=Saturday; otherwise it must
    already be canonical.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Invalid day of week: {value!r}")
    if sunday_first:
        if not 0 <= value <= 6:
            raise ValidationError(f"Invalid Sunday-first day of week: {value}")
        return SUNDAY if value == 0 else value
    if not MONDAY <= value <= SUNDAY:
        raise ValidationError(f"Invalid day of week: {value} (expected 1=Monday..7=Sunday)")
    return value


def day_name(index: int) -> str:
    return DAY_NAMES[normalize_day_index(index)]


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
