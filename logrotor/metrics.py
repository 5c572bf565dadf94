"""Thread-safe counters for the writer and its queue."""

import threading
import time


class WriterMetrics:
    """Tracks writes, rotations and faults of one rotating log file."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records_written = 0
        self._bytes_written = 0
        self._rotations = 0
        self._archives_pruned = 0
        self._prune_failures = 0
        self._name_collisions = 0
        self._rotation_failures = 0
        self._write_errors = 0
        self._dropped = 0
        self._start_time = time.monotonic()

    def record_write(self, nbytes: int):
        with self._lock:
            self._records_written += 1
            self._bytes_written += nbytes

    def record_rotation(self):
        with self._lock:
            self._rotations += 1

    def record_prune(self, deleted: int, failed: int):
        with self._lock:
            self._archives_pruned += deleted
            self._prune_failures += failed

    def record_collision(self, count: int = 1):
        with self._lock:
            self._name_collisions += count

    def record_rotation_failure(self):
        with self._lock:
            self._rotation_failures += 1

    def record_write_error(self):
        with self._lock:
            self._write_errors += 1

    def record_drop(self):
        with self._lock:
            self._dropped += 1

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def snapshot(self) -> dict:
        with self._lock:
            elapsed = time.monotonic() - self._start_time
            return {
                "records_written": self._records_written,
                "bytes_written": self._bytes_written,
                "rotations": self._rotations,
                "archives_pruned": self._archives_pruned,
                "prune_failures": self._prune_failures,
                "name_collisions": self._name_collisions,
                "rotation_failures": self._rotation_failures,
                "write_errors": self._write_errors,
                "dropped_records": self._dropped,
                "elapsed_seconds": round(elapsed, 1),
                "throughput_records_per_sec": (
                    round(self._records_written / elapsed, 1) if elapsed > 0 else 0
                ),
            }
