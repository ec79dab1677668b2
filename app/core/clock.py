from datetime import datetime


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock in the clinic's local time, naive."""

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


system_clock = SystemClock()
