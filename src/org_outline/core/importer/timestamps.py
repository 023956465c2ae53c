"""Parse org timestamp text into Timestamp values."""

import re
from dataclasses import dataclass

from org_outline.models.timestamp import (
    ActiveRangeTimestamp,
    ActiveTimestamp,
    Datetime,
    DiaryTimestamp,
    InactiveRangeTimestamp,
    InactiveTimestamp,
    Timestamp,
)

_DIARY_RE = re.compile(r"^<%%\((?P<expr>.*)\)>$")
_ACTIVE_RANGE_RE = re.compile(r"^<(?P<start>[^<>]+)>--<(?P<end>[^<>]+)>$")
_INACTIVE_RANGE_RE = re.compile(r"^\[(?P<start>[^\[\]]+)\]--\[(?P<end>[^\[\]]+)\]$")
_ACTIVE_RE = re.compile(r"^<(?P<inner>[^<>]+)>$")
_INACTIVE_RE = re.compile(r"^\[(?P<inner>[^\[\]]+)\]$")

_INNER_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})"
    r"(?:\s+(?P<weekday>[^\s\d+\-.]+))?"
    r"(?:\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"
    r"(?:-(?P<end_hour>\d{1,2}):(?P<end_minute>\d{2}))?)?"
    r"(?P<rest>(?:\s+\S+)*)\s*$"
)
_REPEATER_RE = re.compile(r"^(?:\.\+|\+\+|\+)\d+[hdwmy](?:/\d+[hdwmy])?$")
_DELAY_RE = re.compile(r"^--?\d+[hdwmy]$")

# Matches one timestamp anywhere in a line, used to pick planning values.
TIMESTAMP_PATTERN = r"<%%\(.*?\)>|<[^<>]+>(?:--<[^<>]+>)?|\[[^\[\]]+\](?:--\[[^\[\]]+\])?"


@dataclass(frozen=True)
class _Inner:
    """Pieces of one bracketed timestamp body."""

    start: Datetime
    end_time: Datetime | None
    repeater: str | None
    delay: str | None


def _parse_inner(text: str) -> _Inner | None:
    m = _INNER_RE.match(text.strip())
    if m is None:
        return None

    repeater: str | None = None
    delay: str | None = None
    for word in m.group("rest").split():
        if _REPEATER_RE.match(word) and repeater is None:
            repeater = word
        elif _DELAY_RE.match(word) and delay is None:
            delay = word
        else:
            return None

    year, month, day = int(m.group("year")), int(m.group("month")), int(m.group("day"))
    hour = int(m.group("hour")) if m.group("hour") else None
    minute = int(m.group("minute")) if m.group("minute") else None
    try:
        start = Datetime(year, month, day, hour, minute, m.group("weekday"))
        end_time = None
        if m.group("end_hour"):
            end_time = Datetime(
                year, month, day, int(m.group("end_hour")), int(m.group("end_minute")),
                m.group("weekday"),
            )
    except ValueError:
        return None
    return _Inner(start, end_time, repeater, delay)


def parse_timestamp(text: str) -> Timestamp | None:
    """Parse a single org timestamp, returning None when it is not valid.

    Same-day time ranges (``<2025-01-15 Wed 10:00-12:00>``) become range
    timestamps whose start and end share the date.
    """
    text = text.strip()

    m = _DIARY_RE.match(text)
    if m:
        return DiaryTimestamp(expression=m.group("expr"))

    for pattern, range_cls in (
        (_ACTIVE_RANGE_RE, ActiveRangeTimestamp),
        (_INACTIVE_RANGE_RE, InactiveRangeTimestamp),
    ):
        m = pattern.match(text)
        if m:
            start = _parse_inner(m.group("start"))
            end = _parse_inner(m.group("end"))
            if start is None or end is None:
                return None
            return range_cls(
                start=start.start, end=end.start, repeater=start.repeater, delay=start.delay
            )

    for pattern, single_cls, range_cls in (
        (_ACTIVE_RE, ActiveTimestamp, ActiveRangeTimestamp),
        (_INACTIVE_RE, InactiveTimestamp, InactiveRangeTimestamp),
    ):
        m = pattern.match(text)
        if m:
            inner = _parse_inner(m.group("inner"))
            if inner is None:
                return None
            if inner.end_time is not None:
                return range_cls(
                    start=inner.start,
                    end=inner.end_time,
                    repeater=inner.repeater,
                    delay=inner.delay,
                )
            return single_cls(start=inner.start, repeater=inner.repeater, delay=inner.delay)

    return None
