from datetime import date, datetime, timedelta
from typing import Iterator

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

def to_local_naive(value: datetime) -> datetime:
    # Stored datetimes are naive clinic-local time
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(microsecond=0)

def day_name(day: date) -> str:
    # date.weekday() is 0=Monday..6=Sunday
    return DAY_NAMES[day.weekday()]

def iter_dates(start: date, end: date) -> Iterator[date]:
    """Inclusive calendar-date iterator."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)

def format_hours(hours: float) -> str:
    """Human readable time remaining, e.g. '1 day 3 hours' or '45 minutes'."""
    if hours < 0:
        return "already passed"

    days = int(hours // 24)
    remaining_hours = int(hours % 24)
    minutes = int(round((hours % 1) * 60))
    if minutes == 60:
        remaining_hours += 1
        minutes = 0

    parts = []
    if days:
        parts.append(f"{days} day{'s' if days != 1 else ''}")
    if remaining_hours:
        parts.append(f"{remaining_hours} hour{'s' if remaining_hours != 1 else ''}")
    if minutes and not days:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    return " ".join(parts) if parts else "0 minutes"
