"""
Slot expansion.

Turns a professional's weekly recurring availability and date overrides into
the exact set of bookable slots over a horizon, keyed by absolute UTC start.
Nothing here reads the database or the system clock; callers pass the
reference instant and the clinic timezone in.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple, Union

import pytz
from dateutil.relativedelta import relativedelta

TimeValue = Union[time, timedelta, str]
Interval = Tuple[datetime, datetime]


@dataclass(frozen=True)
class RecurringRule:
    day_of_week: int  # 0=Sunday .. 6=Saturday
    start_time: TimeValue
    end_time: TimeValue


@dataclass(frozen=True)
class DateOverride:
    override_date: date
    start_time: TimeValue
    end_time: TimeValue
    is_available: bool


@dataclass(frozen=True)
class ExpectedSlot:
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class Horizon:
    """Inclusive local date range plus the UTC instants bounding its slots."""

    start_date: date
    end_date: date
    range_start: datetime
    range_end: datetime  # exclusive

    def days(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


@dataclass
class DayOverrides:
    blocking: List[DateOverride] = field(default_factory=list)
    opening: List[DateOverride] = field(default_factory=list)


def get_timezone(name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(name)


def to_offset(value: TimeValue) -> timedelta:
    """
    Converts a wall-clock value into an offset from local midnight.

    Accepts ``datetime.time``, ``timedelta`` (what some drivers return for
    TIME columns) and ``HH:MM`` / ``HH:MM:SS`` strings. ``24:00:00`` is the
    following midnight.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, time):
        return timedelta(hours=value.hour, minutes=value.minute, seconds=value.second)
    if isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"Invalid time of day: {value!r}")
        hours, minutes = int(parts[0]), int(parts[1])
        seconds = float(parts[2]) if len(parts) == 3 else 0.0
        if not (0 <= minutes < 60 and 0 <= seconds < 60):
            raise ValueError(f"Invalid time of day: {value!r}")
        offset = timedelta(hours=hours, minutes=minutes, seconds=seconds)
        if offset < timedelta(0) or offset > timedelta(hours=24):
            raise ValueError(f"Invalid time of day: {value!r}")
        return offset
    raise ValueError(f"Cannot convert {type(value)} to time of day")


def to_utc(value: datetime) -> datetime:
    # Naive values come from backends that drop the offset; they are stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_to_utc(day: date, value: TimeValue, tz: pytz.BaseTzInfo) -> datetime:
    local = datetime.combine(day, time.min) + to_offset(value)
    return tz.localize(local).astimezone(timezone.utc)


def day_of_week(day: date) -> int:
    return day.isoweekday() % 7


def compute_horizon(now: datetime, tz: pytz.BaseTzInfo, months: int) -> Horizon:
    today = to_utc(now).astimezone(tz).date()
    end_date = today + relativedelta(months=months)
    return Horizon(
        start_date=today,
        end_date=end_date,
        range_start=local_to_utc(today, time.min, tz),
        range_end=local_to_utc(end_date + timedelta(days=1), time.min, tz),
    )


def group_overrides(overrides: Iterable[DateOverride]) -> Dict[date, DayOverrides]:
    grouped: Dict[date, DayOverrides] = defaultdict(DayOverrides)
    for override in overrides:
        bucket = grouped[override.override_date]
        if override.is_available:
            bucket.opening.append(override)
        else:
            bucket.blocking.append(override)
    return dict(grouped)


def expand_window(
    window_start: datetime,
    window_end: datetime,
    blocks: Sequence[Interval],
    slot_duration: timedelta,
) -> List[datetime]:
    """Steps through a window, keeping whole slots that touch no block."""
    starts: List[datetime] = []
    current = window_start

    while current < window_end:
        slot_end = current + slot_duration
        if slot_end > window_end:
            break
        if not any(current < block_end and block_start < slot_end for block_start, block_end in blocks):
            starts.append(current)
        current = slot_end

    return starts


def slots_for_day(
    day: date,
    rules: Iterable[RecurringRule],
    overrides: DayOverrides,
    tz: pytz.BaseTzInfo,
    slot_duration: timedelta,
) -> List[datetime]:
    weekday = day_of_week(day)
    windows = [
        (rule.start_time, rule.end_time) for rule in rules if rule.day_of_week == weekday
    ]
    windows.extend((opening.start_time, opening.end_time) for opening in overrides.opening)

    if not windows:
        return []

    blocks = [
        (local_to_utc(day, block.start_time, tz), local_to_utc(day, block.end_time, tz))
        for block in overrides.blocking
    ]

    starts: List[datetime] = []
    for start_value, end_value in windows:
        starts.extend(
            expand_window(
                local_to_utc(day, start_value, tz),
                local_to_utc(day, end_value, tz),
                blocks,
                slot_duration,
            )
        )
    return starts


def compute_expected_slots(
    rules: Sequence[RecurringRule],
    overrides: Iterable[DateOverride],
    horizon: Horizon,
    tz: pytz.BaseTzInfo,
    slot_duration_minutes: int,
) -> Dict[datetime, ExpectedSlot]:
    """
    Expected slots for one professional over the horizon.

    Recurring rules for the weekday and opening overrides for the date both
    contribute windows; any overlap with a blocking override drops the whole
    slot. Slots reached from several windows collapse onto their UTC start.
    """
    slot_duration = timedelta(minutes=slot_duration_minutes)
    overrides_by_date = group_overrides(overrides)
    empty = DayOverrides()
    expected: Dict[datetime, ExpectedSlot] = {}

    for day in horizon.days():
        for start in slots_for_day(day, rules, overrides_by_date.get(day, empty), tz, slot_duration):
            if start not in expected:
                expected[start] = ExpectedSlot(start_time=start, end_time=start + slot_duration)

    return expected
