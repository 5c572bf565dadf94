"""WriteQueue: a bounded queue drained by one worker thread that owns the writer."""

import logging
import queue
import threading
import time
from enum import Enum
from threading import Thread

from logrotor.errors import RotationError
from logrotor.metrics import WriterMetrics
from logrotor.writer import RotatingWriter

logger = logging.getLogger(__name__)

_STOP = object()


class BackpressurePolicy(Enum):
    DROP_NEWEST = "drop_newest"
    BLOCK = "block"


class WriteQueue(Thread):
    """Decouples call sites from disk latency.

    Records reach the writer in submission order. When the queue is full the
    incoming record is dropped (DROP_NEWEST) or the caller waits up to
    ``block_timeout`` before it is dropped (BLOCK). ``close()`` drains every
    accepted record before the writer is flushed and closed.
    """

    def __init__(
        self,
        writer: RotatingWriter,
        capacity: int = 1024,
        policy: BackpressurePolicy = BackpressurePolicy.DROP_NEWEST,
        block_timeout: float = 1.0,
        report_interval: float = 60.0,
        on_error=None,
        metrics: WriterMetrics | None = None,
        max_recent_errors: int = 100,
    ):
        super().__init__(daemon=True, name="logrotor-writer")
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._writer = writer
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._policy = policy
        self._block_timeout = block_timeout
        self._report_interval = report_interval
        self._on_error = on_error
        self._metrics = metrics or writer.metrics
        self._max_recent_errors = max_recent_errors
        self._recent_errors: list[RotationError] = []
        self._errors_lock = threading.Lock()
        self._close_lock = threading.Lock()
        # Held around the closing check and the put, so close() cannot slip in between.
        self._intake_lock = threading.Lock()
        self._closing = False
        self._closed = False
        self._last_report = time.monotonic()
        self._last_reported_drops = 0

    @property
    def dropped_count(self) -> int:
        return self._metrics.dropped

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def recent_errors(self) -> list[RotationError]:
        with self._errors_lock:
            return list(self._recent_errors)

    def submit(self, data: bytes | str) -> bool:
        """Queue one record. Returns False if it was dropped."""
        deadline = time.monotonic() + self._block_timeout
        while True:
            with self._intake_lock:
                if self._closing:
                    break
                try:
                    self._queue.put_nowait(data)
                    return True
                except queue.Full:
                    pass
            if self._policy is not BackpressurePolicy.BLOCK:
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(remaining, 0.01))
        self._metrics.record_drop()
        return False

    def run(self):
        while True:
            try:
                item = self._queue.get(timeout=0.5)
            except queue.Empty:
                self._maybe_report_drops()
                continue

            if item is _STOP:
                break
            self._write(item)
            self._maybe_report_drops()

        # Records that raced the stop marker in are still written.
        self._drain()
        self._maybe_report_drops(force=True)
        self._close_writer()

    def close(self, timeout: float | None = None):
        """Stop intake, drain accepted records, then flush and close the writer.

        If the worker is still busy after *timeout*, it closes the writer
        itself once the backlog is written.
        """
        with self._close_lock:
            if self._closed:
                return
            with self._intake_lock:
                self._closing = True
            if self.is_alive():
                # Blocks only while the worker frees a slot.
                self._queue.put(_STOP)
                self.join(timeout)
            if self.is_alive():
                logger.warning("Writer thread still busy after %s s; it will close the writer when done",
                               timeout)
            else:
                # Worker gone (or never started): finish on the caller's thread.
                self._drain()
                self._maybe_report_drops(force=True)
                self._close_writer()
            self._closed = True
            logger.info("Write queue closed (%s)", self._metrics.snapshot())

    # Internal helpers

    def _drain(self):
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                self._write(item)

    def _close_writer(self):
        try:
            self._writer.close()
        except RotationError as exc:
            self._handle_error(exc)

    def _write(self, data):
        try:
            self._writer.write(data)
        except RotationError as exc:
            self._handle_error(exc)

    def _handle_error(self, error: RotationError):
        logger.error("Log write failed: %s", error)
        with self._errors_lock:
            self._recent_errors.append(error)
            if len(self._recent_errors) > self._max_recent_errors:
                self._recent_errors.pop(0)
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("on_error callback failed for %s", type(error).__name__)

    def _maybe_report_drops(self, force: bool = False):
        now = time.monotonic()
        if not force and now - self._last_report < self._report_interval:
            return
        self._last_report = now
        dropped = self._metrics.dropped
        if dropped != self._last_reported_drops:
            logger.warning(
                "Dropped %d log record(s) so far (%d since last report)",
                dropped, dropped - self._last_reported_drops,
            )
            self._last_reported_drops = dropped
