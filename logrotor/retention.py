"""Count-based retention for the archive set of one active file."""

import logging
import os
from dataclasses import dataclass, field

from logrotor.naming import ArchiveNamer

logger = logging.getLogger(__name__)


@dataclass
class PruneResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class RetentionPruner:
    def __init__(self, namer: ArchiveNamer):
        self._namer = namer

    def prune(self, max_files: int | None) -> PruneResult:
        """Delete the oldest archives until at most *max_files* remain.

        Only files matching the namer's scheme are touched. A deletion that
        fails is logged and listed in the result; the rest still proceed.
        """
        result = PruneResult()
        if max_files is None:
            return result

        archives = self._namer.list_archives()
        excess = len(archives) - max_files
        for archive in archives[:max(excess, 0)]:
            try:
                os.remove(archive.path)
            except FileNotFoundError:
                # Already gone; the count is satisfied either way.
                result.deleted.append(archive.path)
            except OSError as exc:
                logger.warning("Could not delete archive %s: %s", archive.path, exc)
                result.failed.append((archive.path, str(exc)))
            else:
                result.deleted.append(archive.path)

        if result.deleted:
            logger.info("Pruned %d archive(s) of %s", len(result.deleted), self._namer.base_path)
        return result
