from datetime import time


def format_time(t: time, use_12h: bool) -> str:
    """'14:30' or '2:30 PM'."""
    if not use_12h:
        return t.strftime("%H:%M")
    hour = t.hour % 12 or 12
    suffix = "AM" if t.hour < 12 else "PM"
    return f"{hour}:{t.minute:02d} {suffix}"
