"""Rotate / keep decision over the closed set of rotation triggers."""

from datetime import datetime

from logrotor.rotation import (
    BothTrigger,
    NeverTrigger,
    RotationTrigger,
    SizeTrigger,
    TimeTrigger,
)
from logrotor.trackers import PeriodTracker, SizeTracker


def _size_due(size: SizeTracker, max_size: int, pending: int) -> bool:
    # An empty file is never archived for size: an oversized record lands in
    # it and the next write rotates.
    return size.current > 0 and size.exceeds(max_size, pending)


def should_rotate(
    trigger: RotationTrigger,
    size: SizeTracker,
    period: PeriodTracker,
    now: datetime,
    pending: int = 0,
) -> bool:
    """Decide whether the active file must be rotated before writing *pending* bytes.

    Hybrid triggers rotate when either condition holds. The caller performs a
    single rotation even if both fire on the same write.
    """
    if isinstance(trigger, NeverTrigger):
        return False
    if isinstance(trigger, SizeTrigger):
        return _size_due(size, trigger.max_size, pending)
    if isinstance(trigger, TimeTrigger):
        return period.transitioned(now)
    if isinstance(trigger, BothTrigger):
        return _size_due(size, trigger.max_size, pending) or period.transitioned(now)
    raise TypeError(f"unknown rotation trigger: {trigger!r}")
