"""Size and calendar-period trackers for the active log file."""

from datetime import datetime, tzinfo

from logrotor.rotation import Bucket, RotationPeriod


class SizeTracker:
    """Bytes written to the active file since it was opened or rotated."""

    def __init__(self, initial: int = 0):
        self._current = initial

    @property
    def current(self) -> int:
        return self._current

    def record(self, n: int):
        self._current += n

    def exceeds(self, limit: int, pending: int = 0) -> bool:
        """True when the file plus *pending* bytes would go past *limit*."""
        return self._current + pending > limit

    def reset(self):
        self._current = 0

    def reseed(self, size: int):
        """Take the counter from the real file size after an open."""
        self._current = size


class PeriodTracker:
    """Remembers the bucket of the active file and spots bucket changes.

    One tracker serves a single period, so bucket ids of different
    granularities are never compared. A tracker built without a period (or
    with RotationPeriod.NEVER) never reports a transition.
    """

    def __init__(self, period: RotationPeriod | None, tz: tzinfo | None = None):
        self._period = period if period is not RotationPeriod.NEVER else None
        self._tz = tz
        self._last: Bucket | None = None

    @property
    def period(self) -> RotationPeriod | None:
        return self._period

    @property
    def last_bucket(self) -> Bucket | None:
        return self._last

    def current_bucket(self, now: datetime) -> Bucket | None:
        if self._period is None:
            return None
        return self._period.bucket(now, self._tz)

    def transitioned(self, now: datetime) -> bool:
        if self._period is None or self._last is None:
            return False
        return self.current_bucket(now) != self._last

    def reseed(self, instant: datetime):
        self._last = self.current_bucket(instant)
