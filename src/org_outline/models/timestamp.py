"""Org timestamps: datetimes, the closed timestamp union, and planning blocks."""

from dataclasses import dataclass
from datetime import date
from typing import assert_never

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class Datetime:
    """A calendar date with an optional wall-clock time.

    Hour and minute are either both set or both unset.
    """

    year: int
    month: int
    day: int
    hour: int | None = None
    minute: int | None = None
    weekday: str | None = None

    def __post_init__(self) -> None:
        if (self.hour is None) != (self.minute is None):
            msg = f"hour and minute must both be set or both be unset: {self.hour!r}:{self.minute!r}"
            raise ValueError(msg)
        if self.hour is not None and not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):  # type: ignore[operator]
            msg = f"Invalid time {self.hour:02d}:{self.minute:02d}"
            raise ValueError(msg)
        # Raises ValueError for impossible dates such as 2025-02-30.
        date(self.year, self.month, self.day)

    @classmethod
    def from_date(cls, value: date, *, hour: int | None = None, minute: int | None = None) -> "Datetime":
        return cls(
            year=value.year,
            month=value.month,
            day=value.day,
            hour=hour,
            minute=minute,
            weekday=_WEEKDAYS[value.weekday()],
        )

    @property
    def has_time(self) -> bool:
        return self.hour is not None

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def format_org(self) -> str:
        """Format as ``YYYY-MM-DD Day[ HH:MM]``."""
        weekday = self.weekday or _WEEKDAYS[self.to_date().weekday()]
        text = f"{self.year:04d}-{self.month:02d}-{self.day:02d} {weekday}"
        if self.hour is not None:
            text += f" {self.hour:02d}:{self.minute:02d}"
        return text


@dataclass(frozen=True)
class ActiveTimestamp:
    start: Datetime
    repeater: str | None = None
    delay: str | None = None


@dataclass(frozen=True)
class InactiveTimestamp:
    start: Datetime
    repeater: str | None = None
    delay: str | None = None


@dataclass(frozen=True)
class ActiveRangeTimestamp:
    start: Datetime
    end: Datetime
    repeater: str | None = None
    delay: str | None = None


@dataclass(frozen=True)
class InactiveRangeTimestamp:
    start: Datetime
    end: Datetime
    repeater: str | None = None
    delay: str | None = None


@dataclass(frozen=True)
class DiaryTimestamp:
    """A sexp diary timestamp such as ``<%%(diary-float t 4 2)>``."""

    expression: str


Timestamp = (
    ActiveTimestamp
    | InactiveTimestamp
    | ActiveRangeTimestamp
    | InactiveRangeTimestamp
    | DiaryTimestamp
)


def start_date(ts: Timestamp) -> date | None:
    """Return the first concrete date of a timestamp, or None for diary entries."""
    match ts:
        case ActiveTimestamp(start=start) | InactiveTimestamp(start=start):
            return start.to_date()
        case ActiveRangeTimestamp(start=start) | InactiveRangeTimestamp(start=start):
            return start.to_date()
        case DiaryTimestamp():
            return None
        case _:
            assert_never(ts)


def end_date(ts: Timestamp) -> date | None:
    """Return the last concrete date of a timestamp (the start date for single dates)."""
    match ts:
        case ActiveTimestamp(start=start) | InactiveTimestamp(start=start):
            return start.to_date()
        case ActiveRangeTimestamp(end=end) | InactiveRangeTimestamp(end=end):
            return end.to_date()
        case DiaryTimestamp():
            return None
        case _:
            assert_never(ts)


def _with_suffixes(body: str, repeater: str | None, delay: str | None) -> str:
    parts = [body]
    if repeater:
        parts.append(repeater)
    if delay:
        parts.append(delay)
    return " ".join(parts)


def format_timestamp(ts: Timestamp) -> str:
    """Render a timestamp back into org syntax."""
    match ts:
        case ActiveTimestamp(start=start, repeater=repeater, delay=delay):
            return f"<{_with_suffixes(start.format_org(), repeater, delay)}>"
        case InactiveTimestamp(start=start, repeater=repeater, delay=delay):
            return f"[{_with_suffixes(start.format_org(), repeater, delay)}]"
        case ActiveRangeTimestamp(start=start, end=end, repeater=repeater, delay=delay):
            return f"<{_with_suffixes(start.format_org(), repeater, delay)}>--<{end.format_org()}>"
        case InactiveRangeTimestamp(start=start, end=end, repeater=repeater, delay=delay):
            return f"[{_with_suffixes(start.format_org(), repeater, delay)}]--[{end.format_org()}]"
        case DiaryTimestamp(expression=expression):
            return f"<%%({expression})>"
        case _:
            assert_never(ts)


@dataclass(frozen=True)
class Planning:
    """The SCHEDULED / DEADLINE / CLOSED line of a headline."""

    scheduled: Timestamp | None = None
    deadline: Timestamp | None = None
    closed: Timestamp | None = None

    @property
    def is_empty(self) -> bool:
        return self.scheduled is None and self.deadline is None and self.closed is None

    def get(self, kind: str) -> Timestamp | None:
        """Return the timestamp for ``scheduled``, ``deadline`` or ``closed``."""
        if kind not in ("scheduled", "deadline", "closed"):
            msg = f"Unknown planning kind {kind!r}"
            raise ValueError(msg)
        return getattr(self, kind)
