"""Injectable sources of "now"."""

from datetime import UTC, datetime

from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)


class FixedClock:
    """Clock frozen at a given instant, for tests and replays."""

    def __init__(self, instant: datetime) -> None:
        self.instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self.instant


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC.

    Example:
        >>> ensure_utc(datetime(2024, 1, 1, 12, 0))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


__all__ = ["Clock", "FixedClock", "SystemClock", "ensure_utc"]
