"""Archive naming: derive, parse and list archive paths for an active file."""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime

from logrotor.errors import NameCollision
from logrotor.rotation import STAMP_PATTERNS, Bucket, RotationPeriod

logger = logging.getLogger(__name__)

MAX_COLLISION_ATTEMPTS = 1000


@dataclass(frozen=True)
class ArchiveInfo:
    path: str
    stamp: str | None
    sequence: int

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.stamp or "", self.sequence)


class ArchiveNamer:
    """Maps (bucket, sequence) to archive paths next to the active file.

    Size-only rotation uses ``<name>.<seq:06d>``; time and hybrid rotation use
    ``<name>.<stamp>.<seq:03d>`` where the stamp is the bucket whose records
    the archive holds. Within the width of the sequence, sorting names
    lexically gives oldest-first order.
    """

    def __init__(self, base_path: str, period: RotationPeriod | None = None):
        self.base_path = base_path
        self.directory = os.path.dirname(base_path) or "."
        self.filename = os.path.basename(base_path)
        self.period = period if period is not RotationPeriod.NEVER else None
        escaped = re.escape(self.filename)
        if self.period is None:
            self._pattern = re.compile(rf"^{escaped}\.(?P<seq>\d+)$")
        else:
            stamp = STAMP_PATTERNS[self.period]
            self._pattern = re.compile(rf"^{escaped}\.(?P<stamp>{stamp})\.(?P<seq>\d+)$")
        self.collisions = 0

    def name_for(self, bucket: Bucket | None, sequence: int) -> str:
        if self.period is None or bucket is None:
            name = f"{self.filename}.{sequence:06d}"
        else:
            name = f"{self.filename}.{bucket.stamp}.{sequence:03d}"
        return os.path.join(self.directory, name)

    def parse(self, filename: str) -> ArchiveInfo | None:
        """Parse an archive file name. Returns None when it is not ours."""
        match = self._pattern.match(filename)
        if match is None:
            return None
        stamp = match.groupdict().get("stamp")
        return ArchiveInfo(
            path=os.path.join(self.directory, filename),
            stamp=stamp,
            sequence=int(match.group("seq")),
        )

    def list_archives(self) -> list[ArchiveInfo]:
        """Archive set for the active file, oldest first."""
        try:
            names = os.listdir(self.directory)
        except FileNotFoundError:
            return []
        archives = []
        for name in names:
            info = self.parse(name)
            if info is not None:
                archives.append(info)
        archives.sort(key=lambda a: a.sort_key)
        return archives

    def next_sequence(self, bucket: Bucket | None) -> int:
        """First sequence not yet used on disk for *bucket*."""
        stamp = bucket.stamp if (self.period is not None and bucket is not None) else None
        used = [a.sequence for a in self.list_archives() if a.stamp == stamp]
        return max(used) + 1 if used else 1

    def resolve(self, bucket: Bucket | None, sequence: int) -> tuple[str, int]:
        """Return a free archive path and the sequence it uses.

        An existing target (clock skew, a hand-made file) is never overwritten:
        the collision is logged and the next sequence is tried.
        """
        for attempt in range(MAX_COLLISION_ATTEMPTS):
            candidate = self.name_for(bucket, sequence + attempt)
            if not os.path.lexists(candidate):
                return candidate, sequence + attempt
            self.collisions += 1
            logger.warning("Archive name %s already exists, trying next sequence", candidate)
        raise NameCollision(
            f"no free archive name after {MAX_COLLISION_ATTEMPTS} attempts",
            path=self.name_for(bucket, sequence),
        )

    def recovery_name(self, now: datetime) -> str:
        """Path for an active file that could not be archived.

        Recovery names never match the archive pattern, so retention leaves
        them alone.
        """
        stamp = now.strftime("%Y%m%d_%H%M%S_") + f"{now.microsecond:06d}"
        return os.path.join(self.directory, f"{self.filename}.recovery-{stamp}")
