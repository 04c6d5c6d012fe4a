from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        # Millisecond precision survives the round trip through the store.
        ts = datetime.now(timezone.utc)
        return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0, seconds: float = 0) -> datetime:
        self._now = self._now + timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
        return self._now


def seconds_since(clock: Clock, start: datetime) -> float:
    return round((clock.now() - start).total_seconds(), 3)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def now_iso(clock: Clock | None = None) -> str:
    return to_iso((clock or SystemClock()).now())  # type: ignore[return-value]


def truncate_to_seconds(value: datetime) -> datetime:
    return value.replace(microsecond=0)


def seconds_equal(a: datetime | None, b: datetime | None) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return int(a.timestamp()) == int(b.timestamp())


def year_str(value: datetime | None) -> str:
    return f"{value.year:04d}" if value else "0000"


def month_str(value: datetime | None) -> str:
    return f"{value.month:02d}" if value else "00"


def year_month_str(value: datetime | None) -> str:
    return f"{year_str(value)}-{month_str(value)}"
