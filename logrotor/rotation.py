"""Rotation triggers, calendar periods and bucket arithmetic."""

import functools
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from enum import Enum


class RotationPeriod(Enum):
    NEVER = "never"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    def bucket(self, instant: datetime, tz: tzinfo | None = None) -> "Bucket | None":
        """Return the calendar-aligned bucket containing *instant*.

        *instant* is converted to *tz* (the local zone when None) before the
        boundary is computed, so daily buckets start at local midnight rather
        than 24 hours after the first write.
        """
        if self is RotationPeriod.NEVER:
            return None
        local = instant.astimezone(tz)
        if self is RotationPeriod.HOURLY:
            start = local.replace(minute=0, second=0, microsecond=0)
        elif self is RotationPeriod.DAILY:
            start = local.replace(hour=0, minute=0, second=0, microsecond=0)
        elif self is RotationPeriod.WEEKLY:
            monday = local.date() - timedelta(days=local.weekday())
            start = local.replace(
                year=monday.year, month=monday.month, day=monday.day,
                hour=0, minute=0, second=0, microsecond=0,
            )
        else:
            start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        # Wall-clock start, so a DST offset change inside one day does not
        # split the bucket.
        return Bucket(self, start.replace(tzinfo=None))


_STAMP_FORMATS = {
    RotationPeriod.HOURLY: "%Y-%m-%dT%H",
    RotationPeriod.DAILY: "%Y-%m-%d",
    RotationPeriod.WEEKLY: "%Y-%m-%d",
    RotationPeriod.MONTHLY: "%Y-%m",
}

# Regex fragments matching each period's canonical stamp.
STAMP_PATTERNS = {
    RotationPeriod.HOURLY: r"\d{4}-\d{2}-\d{2}T\d{2}",
    RotationPeriod.DAILY: r"\d{4}-\d{2}-\d{2}",
    RotationPeriod.WEEKLY: r"\d{4}-\d{2}-\d{2}",
    RotationPeriod.MONTHLY: r"\d{4}-\d{2}",
}


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Bucket:
    """A calendar interval of one period, identified by its naive local start."""

    period: RotationPeriod
    start: datetime

    def _check(self, other: "Bucket"):
        if self.period is not other.period:
            raise ValueError(
                f"cannot compare {self.period.value} bucket with {other.period.value} bucket"
            )

    def __eq__(self, other):
        if not isinstance(other, Bucket):
            return NotImplemented
        return self.period is other.period and self.start == other.start

    def __hash__(self):
        return hash((self.period, self.start))

    def __lt__(self, other: "Bucket") -> bool:
        if not isinstance(other, Bucket):
            return NotImplemented
        self._check(other)
        return self.start < other.start

    @property
    def stamp(self) -> str:
        return self.start.strftime(_STAMP_FORMATS[self.period])


def _check_limits(max_size: int | None, max_files: int | None):
    if max_size is not None and max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")
    if max_files is not None and max_files < 1:
        raise ValueError(f"max_files must be at least 1, got {max_files}")


@dataclass(frozen=True)
class NeverTrigger:
    pass


@dataclass(frozen=True)
class SizeTrigger:
    max_size: int
    max_files: int | None = None

    def __post_init__(self):
        _check_limits(self.max_size, self.max_files)


@dataclass(frozen=True)
class TimeTrigger:
    period: RotationPeriod
    max_files: int | None = None

    def __post_init__(self):
        _check_limits(None, self.max_files)


@dataclass(frozen=True)
class BothTrigger:
    period: RotationPeriod
    max_size: int
    max_files: int | None = None

    def __post_init__(self):
        _check_limits(self.max_size, self.max_files)


RotationTrigger = NeverTrigger | SizeTrigger | TimeTrigger | BothTrigger


def trigger_period(trigger: RotationTrigger) -> RotationPeriod | None:
    """Period driving time-based rotation, or None for size-only/never."""
    if isinstance(trigger, (TimeTrigger, BothTrigger)):
        if trigger.period is RotationPeriod.NEVER:
            return None
        return trigger.period
    return None


def trigger_max_size(trigger: RotationTrigger) -> int | None:
    if isinstance(trigger, (SizeTrigger, BothTrigger)):
        return trigger.max_size
    return None


def trigger_max_files(trigger: RotationTrigger) -> int | None:
    """Retention limit; None means archives are kept forever."""
    if isinstance(trigger, NeverTrigger):
        return None
    return trigger.max_files
