"""Append-only log writer with size-based and calendar-based rotation."""

import logging
import os
import threading
from datetime import datetime, timezone
from enum import Enum

from logrotor.config import FileLogConfig, resolve_timezone
from logrotor.errors import (
    NameCollision,
    OpenFailed,
    PruneFailed,
    RotationError,
    RotationFailed,
    WriteFailed,
)
from logrotor.metrics import WriterMetrics
from logrotor.naming import ArchiveNamer
from logrotor.policy import should_rotate
from logrotor.retention import RetentionPruner
from logrotor.rotation import trigger_max_files, trigger_period
from logrotor.trackers import PeriodTracker, SizeTracker

logger = logging.getLogger(__name__)


class WriterState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    ROTATING = "rotating"


class RotatingWriter:
    """Owns the active log file and rotates it according to a trigger.

    States: CLOSED -> OPEN -> ROTATING -> OPEN -> ... -> CLOSED.

    - CLOSED -> OPEN on construction (unless ``lazy``), ``open()`` or the
      first write after ``close()``. The size counter is reseeded from the
      file length and the bucket from the file's mtime when it already holds
      data.
    - ROTATING closes the active file, renames it to its archive name, opens a
      fresh file at the configured path, resets the trackers and prunes old
      archives. The record that triggered the rotation goes into the new file.

    Opening and appending failures are raised (``OpenFailed``,
    ``WriteFailed``). A failed archive rename is reported through
    ``on_error`` and logging carries on; ``RotationFailed`` is raised only
    when the new active file cannot be opened. Prune failures are reported,
    never raised.
    """

    def __init__(
        self,
        config: FileLogConfig,
        time_func=None,
        on_error=None,
        metrics: WriterMetrics | None = None,
        lazy: bool = False,
    ):
        self._config = config
        self._trigger = config.rotation
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._on_error = on_error
        self._metrics = metrics or WriterMetrics()
        self._lock = threading.Lock()
        self._reports: list[RotationError] = []
        self._dispatch_state = threading.local()
        self._file = None
        self._filepath = config.path
        self._state = WriterState.CLOSED
        self._opened_at: datetime | None = None

        period = trigger_period(self._trigger)
        self._namer = ArchiveNamer(self._filepath, period)
        self._pruner = RetentionPruner(self._namer)
        self._size = SizeTracker()
        self._period = PeriodTracker(period, resolve_timezone(config.timezone))
        self._sequence = 1

        if not lazy:
            self.open()

    # Public API

    @property
    def path(self) -> str:
        return self._filepath

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def metrics(self) -> WriterMetrics:
        return self._metrics

    @property
    def namer(self) -> ArchiveNamer:
        return self._namer

    @property
    def current_size(self) -> int:
        return self._size.current

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def opened_at(self) -> datetime | None:
        return self._opened_at

    def open(self):
        with self._lock:
            if self._state is WriterState.CLOSED:
                self._open()

    def write(self, data: bytes | str) -> str | None:
        """Append one record. Returns the archive path if a rotation occurred."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        reports: list[RotationError] = []
        try:
            with self._lock:
                self._reports = reports
                if self._state is WriterState.CLOSED:
                    self._open()

                archived = None
                now = self._time_func()
                if should_rotate(self._trigger, self._size, self._period, now, len(data)):
                    archived = self._rotate(now)
                self._append(data)
                return archived
        finally:
            # on_error may log back into this writer, so it runs unlocked.
            self._dispatch(reports)

    def flush(self):
        """Push buffered bytes to stable storage without closing."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.flush()
                os.fsync(self._file.fileno())
            except OSError as exc:
                raise WriteFailed(f"flush of {self._filepath} failed: {exc}", path=self._filepath) from exc

    def close(self):
        """Flush to stable storage and release the file. Safe to call twice."""
        with self._lock:
            if self._state is WriterState.CLOSED:
                return
            try:
                self._close_file()
            finally:
                self._state = WriterState.CLOSED
            logger.debug("Closed %s", self._filepath)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # Internal helpers

    def _open(self):
        parent = os.path.dirname(self._filepath)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._file = open(self._filepath, "ab")
        except OSError as exc:
            self._file = None
            self._metrics.record_write_error()
            raise OpenFailed(f"cannot open {self._filepath}: {exc}", path=self._filepath) from exc

        now = self._time_func()
        size = os.fstat(self._file.fileno()).st_size
        self._size.reseed(size)
        if size > 0:
            mtime = os.path.getmtime(self._filepath)
            self._period.reseed(datetime.fromtimestamp(mtime, tz=timezone.utc))
        else:
            self._period.reseed(now)
        self._sequence = self._namer.next_sequence(self._period.last_bucket)
        self._opened_at = now
        self._state = WriterState.OPEN
        logger.debug("Opened %s (size=%d, sequence=%d)", self._filepath, size, self._sequence)

    def _close_file(self):
        if self._file is None:
            return
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        except OSError as exc:
            raise WriteFailed(f"flush of {self._filepath} failed: {exc}", path=self._filepath) from exc
        finally:
            self._file.close()
            self._file = None

    def _append(self, data: bytes):
        try:
            self._file.write(data)
            self._file.flush()
        except OSError as exc:
            self._metrics.record_write_error()
            raise WriteFailed(f"write to {self._filepath} failed: {exc}", path=self._filepath) from exc
        self._size.record(len(data))
        self._metrics.record_write(len(data))

    def _rotate(self, now: datetime) -> str | None:
        """Archive the active file and open a fresh one. Returns the archive path."""
        if self._size.current == 0:
            # Bucket changed but nothing was written to it; no empty archives.
            self._period.reseed(now)
            self._sequence = self._namer.next_sequence(self._period.last_bucket)
            return None

        self._state = WriterState.ROTATING
        old_bucket = self._period.last_bucket
        try:
            self._close_file()
        except WriteFailed:
            self._state = WriterState.CLOSED
            raise

        archived = self._archive(old_bucket, now)

        try:
            self._file = open(self._filepath, "ab")
        except OSError as exc:
            self._file = None
            self._state = WriterState.CLOSED
            self._metrics.record_rotation_failure()
            raise RotationFailed(
                f"cannot open new active file {self._filepath}: {exc}", path=self._filepath
            ) from exc

        self._size.reset()
        self._period.reseed(now)
        self._sequence = self._namer.next_sequence(self._period.last_bucket)
        self._opened_at = now
        self._state = WriterState.OPEN

        self._prune()
        return archived

    def _archive(self, bucket, now: datetime) -> str | None:
        collisions_before = self._namer.collisions
        try:
            archive_path, _ = self._namer.resolve(bucket, self._sequence)
            os.rename(self._filepath, archive_path)
        except (OSError, NameCollision) as exc:
            self._recover(now, exc)
            return None
        finally:
            collided = self._namer.collisions - collisions_before
            if collided:
                self._metrics.record_collision(collided)

        if collided:
            self._report(NameCollision(
                f"archive name taken {collided} time(s), used {archive_path}", path=archive_path
            ))
        self._metrics.record_rotation()
        logger.info("Rotated %s -> %s", self._filepath, archive_path)
        return archive_path

    def _recover(self, now: datetime, cause: Exception):
        """Move an unarchivable active file aside so logging can go on."""
        self._metrics.record_rotation_failure()
        recovery = self._namer.recovery_name(now)
        try:
            os.rename(self._filepath, recovery)
        except FileNotFoundError:
            recovery = None
        except OSError as exc:
            logger.warning("Could not move %s to %s: %s", self._filepath, recovery, exc)
            recovery = None

        where = f"left at {recovery}" if recovery else "left in place"
        self._report(RotationFailed(
            f"could not archive {self._filepath} ({cause}); old file {where}",
            path=recovery or self._filepath,
        ))

    def _prune(self):
        max_files = trigger_max_files(self._trigger)
        if max_files is None:
            return
        try:
            result = self._pruner.prune(max_files)
        except OSError as exc:
            self._report(PruneFailed(f"cannot list archives of {self._filepath}: {exc}", failed=[]))
            return
        self._metrics.record_prune(len(result.deleted), len(result.failed))
        if result.failed:
            self._report(PruneFailed(
                f"{len(result.failed)} archive(s) could not be deleted", failed=result.failed
            ))

    def _report(self, error: RotationError):
        """Queue a non-fatal error; ``write`` hands it to ``on_error`` once unlocked."""
        logger.warning("%s: %s", type(error).__name__, error)
        self._reports.append(error)

    def _dispatch(self, reports: list[RotationError]):
        if not reports or self._on_error is None:
            return
        if getattr(self._dispatch_state, "active", False):
            # Raised by a record the callback itself logged; already logged above.
            return
        self._dispatch_state.active = True
        try:
            for error in reports:
                try:
                    self._on_error(error)
                except Exception:
                    logger.exception("on_error callback failed for %s", type(error).__name__)
        finally:
            self._dispatch_state.active = False
