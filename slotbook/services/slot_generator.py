from dataclasses import dataclass
from datetime import time

from slotbook.core.errors import ConfigurationError


@dataclass(frozen=True, order=True)
class TimeWindow:
    start: time
    end: time

    @property
    def duration_minutes(self) -> int:
        return time_to_minutes(self.end) - time_to_minutes(self.start)


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def generate_slots(open_time: time, close_time: time, duration_minutes: int) -> list[TimeWindow]:
    """Fixed-length windows from open_time, stepping by duration_minutes.

    Stops before a window would end after close_time, so there is no partial
    trailing slot. Seconds are dropped (minute precision).
    """
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ConfigurationError(f"Slot duration must be a positive number of minutes, got {duration_minutes!r}")
    start = time_to_minutes(open_time)
    end = time_to_minutes(close_time)
    if end < start:
        raise ConfigurationError(
            f"Working window closes before it opens ({open_time.isoformat()} - {close_time.isoformat()})"
        )

    slots: list[TimeWindow] = []
    current = start
    while current + duration_minutes <= end:
        slots.append(TimeWindow(minutes_to_time(current), minutes_to_time(current + duration_minutes)))
        current += duration_minutes
    return slots
