"""Tests for the rotating writer."""

import os
import shutil
import tempfile
import threading
import unittest
from datetime import datetime, timezone
from unittest import mock

from logrotor.config import FileLogConfig
from logrotor.errors import (
    NameCollision,
    OpenFailed,
    PruneFailed,
    RotationFailed,
    WriteFailed,
)
from logrotor.rotation import (
    BothTrigger,
    NeverTrigger,
    RotationPeriod,
    SizeTrigger,
    TimeTrigger,
)
from logrotor.writer import RotatingWriter, WriterState

UTC = timezone.utc


def _record(i: int, size: int = 30) -> bytes:
    """A distinct record of exactly *size* bytes ending in a newline."""
    head = f"record-{i:03d}-"
    return (head + "x" * (size - len(head) - 1) + "\n").encode()


class _WriterTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmpdir, "test.log")
        self.now = datetime(2025, 1, 15, 10, 0, 0, tzinfo=UTC)
        self.errors = []

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _clock(self):
        return self.now

    def _writer(self, rotation=None, **kwargs):
        config = FileLogConfig(path=self.path, rotation=rotation or NeverTrigger(), timezone="UTC")
        kwargs.setdefault("time_func", self._clock)
        kwargs.setdefault("on_error", self.errors.append)
        return RotatingWriter(config, **kwargs)

    def _read(self, name="test.log") -> bytes:
        with open(os.path.join(self.tmpdir, name), "rb") as f:
            return f.read()

    def _files(self):
        return sorted(os.listdir(self.tmpdir))


class TestWriterBasic(_WriterTestCase):
    def test_write_creates_file(self):
        writer = self._writer()
        writer.write(b"hello world\n")
        writer.close()
        self.assertEqual(self._read(), b"hello world\n")

    def test_write_accepts_text(self):
        writer = self._writer()
        writer.write("héllo\n")
        writer.close()
        self.assertEqual(self._read(), "héllo\n".encode("utf-8"))

    def test_records_are_not_altered(self):
        writer = self._writer()
        writer.write(b"no newline")
        writer.write(b'{"json": true}\n')
        writer.close()
        self.assertEqual(self._read(), b'no newline{"json": true}\n')

    def test_no_rotation_returns_none(self):
        writer = self._writer()
        self.assertIsNone(writer.write(b"small line\n"))
        writer.close()

    def test_creates_parent_directories(self):
        self.path = os.path.join(self.tmpdir, "nested", "inner", "test.log")
        writer = self._writer()
        writer.write(b"hello parent\n")
        writer.close()
        with open(self.path, "rb") as f:
            self.assertEqual(f.read(), b"hello parent\n")

    def test_never_trigger_keeps_single_file(self):
        writer = self._writer(NeverTrigger())
        total = 0
        for i in range(1000):
            data = b"x" * (i % 50 + 1)
            writer.write(data)
            total += len(data)
        writer.close()

        self.assertEqual(self._files(), ["test.log"])
        self.assertEqual(os.path.getsize(self.path), total)

    def test_lazy_open(self):
        writer = self._writer(lazy=True)
        self.assertEqual(writer.state, WriterState.CLOSED)
        self.assertFalse(os.path.exists(self.path))
        writer.write(b"first\n")
        self.assertEqual(writer.state, WriterState.OPEN)
        writer.close()


class TestClose(_WriterTestCase):
    def test_close_twice_is_harmless(self):
        writer = self._writer()
        writer.write(b"one\n")
        writer.close()
        writer.close()
        self.assertEqual(writer.state, WriterState.CLOSED)
        self.assertEqual(self._read(), b"one\n")

    def test_write_after_close_reopens(self):
        writer = self._writer()
        writer.write(b"one\n")
        writer.close()
        writer.write(b"two\n")
        writer.close()
        self.assertEqual(self._read(), b"one\ntwo\n")

    def test_flush_makes_data_visible(self):
        writer = self._writer()
        writer.write(b"flushed\n")
        writer.flush()
        self.assertEqual(self._read(), b"flushed\n")
        writer.close()

    def test_context_manager_closes(self):
        with self._writer() as writer:
            writer.write(b"scoped\n")
        self.assertEqual(writer.state, WriterState.CLOSED)


class TestSizeRotation(_WriterTestCase):
    def test_three_writes_of_forty_bytes(self):
        writer = self._writer(SizeTrigger(max_size=100, max_files=2))
        first, second, third = b"a" * 40, b"b" * 40, b"c" * 40

        self.assertIsNone(writer.write(first))
        self.assertIsNone(writer.write(second))
        archived = writer.write(third)
        writer.close()

        self.assertEqual(archived, os.path.join(self.tmpdir, "test.log.000001"))
        self.assertEqual(self._files(), ["test.log", "test.log.000001"])
        self.assertEqual(self._read(), third)
        self.assertEqual(self._read("test.log.000001"), first + second)

    def test_rotation_count_and_size_bound(self):
        writer = self._writer(SizeTrigger(max_size=100))
        total = 0
        for i in range(25):
            self.assertLessEqual(writer.current_size, 100)
            writer.write(_record(i))
            total += 30
        writer.close()

        rotations = writer.metrics.snapshot()["rotations"]
        self.assertLessEqual(abs(rotations - total // 100), 1)
        for name in self._files():
            self.assertLessEqual(os.path.getsize(os.path.join(self.tmpdir, name)), 100)

    def test_retention_keeps_newest_archives(self):
        writer = self._writer(SizeTrigger(max_size=50, max_files=2))
        for i in range(10):
            writer.write(_record(i))
        writer.close()

        self.assertEqual(self._files(), ["test.log", "test.log.000008", "test.log.000009"])
        self.assertEqual(self._read("test.log.000008"), _record(7))
        self.assertEqual(self._read("test.log.000009"), _record(8))
        self.assertEqual(self._read(), _record(9))

    def test_oversized_record_goes_into_empty_file(self):
        writer = self._writer(SizeTrigger(max_size=10))
        self.assertIsNone(writer.write(b"y" * 50))
        self.assertIsNotNone(writer.write(b"z"))
        writer.close()
        self.assertEqual(self._read(), b"z")

    def test_existing_file_size_is_reseeded(self):
        with open(self.path, "wb") as f:
            f.write(b"o" * 60)

        writer = self._writer(SizeTrigger(max_size=100))
        self.assertEqual(writer.current_size, 60)
        archived = writer.write(b"n" * 50)
        writer.close()

        self.assertEqual(self._read(os.path.basename(archived)), b"o" * 60)
        self.assertEqual(self._read(), b"n" * 50)

    def test_restart_does_not_overwrite_archives(self):
        for seq in (1, 2):
            with open(os.path.join(self.tmpdir, f"test.log.{seq:06d}"), "wb") as f:
                f.write(b"old %d" % seq)

        writer = self._writer(SizeTrigger(max_size=10))
        writer.write(b"12345678")
        archived = writer.write(b"abcdefgh")
        writer.close()

        self.assertEqual(os.path.basename(archived), "test.log.000003")
        self.assertEqual(self._read("test.log.000001"), b"old 1")
        self.assertEqual(self._read("test.log.000002"), b"old 2")


class TestTimeRotation(_WriterTestCase):
    def test_daily_rotation_at_midnight(self):
        writer = self._writer(TimeTrigger(period=RotationPeriod.DAILY))

        self.assertIsNone(writer.write(b"a\n"))
        self.now = datetime(2025, 1, 15, 23, 59, 59, tzinfo=UTC)
        self.assertIsNone(writer.write(b"b\n"))
        self.now = datetime(2025, 1, 16, 0, 0, 0, tzinfo=UTC)
        archived = writer.write(b"c\n")
        writer.close()

        self.assertEqual(os.path.basename(archived), "test.log.2025-01-15.001")
        self.assertEqual(self._read("test.log.2025-01-15.001"), b"a\nb\n")
        self.assertEqual(self._read(), b"c\n")

    def test_empty_file_is_not_archived_on_transition(self):
        writer = self._writer(TimeTrigger(period=RotationPeriod.DAILY))
        self.now = datetime(2025, 1, 17, 9, 0, tzinfo=UTC)
        self.assertIsNone(writer.write(b"late\n"))
        writer.close()
        self.assertEqual(self._files(), ["test.log"])

    def test_restart_uses_file_mtime(self):
        with open(self.path, "wb") as f:
            f.write(b"yesterday\n")
        yesterday = datetime(2025, 1, 14, 12, 0, tzinfo=UTC).timestamp()
        os.utime(self.path, (yesterday, yesterday))

        writer = self._writer(TimeTrigger(period=RotationPeriod.DAILY))
        archived = writer.write(b"today\n")
        writer.close()

        self.assertEqual(os.path.basename(archived), "test.log.2025-01-14.001")
        self.assertEqual(self._read("test.log.2025-01-14.001"), b"yesterday\n")


class TestHybridRotation(_WriterTestCase):
    def test_size_rotations_within_one_day_get_sequences(self):
        writer = self._writer(BothTrigger(period=RotationPeriod.DAILY, max_size=50))
        writer.write(_record(0))
        first = writer.write(_record(1))
        second = writer.write(_record(2))
        self.now = datetime(2025, 1, 16, 8, 0, tzinfo=UTC)
        third = writer.write(b"next day\n")
        writer.close()

        self.assertEqual(
            [os.path.basename(p) for p in (first, second, third)],
            ["test.log.2025-01-15.001", "test.log.2025-01-15.002", "test.log.2025-01-15.003"],
        )
        self.assertEqual(writer.metrics.snapshot()["rotations"], 3)
        self.assertEqual(self._read(), b"next day\n")

    def test_size_and_time_together_rotate_once(self):
        writer = self._writer(BothTrigger(period=RotationPeriod.DAILY, max_size=50))
        writer.write(_record(0))
        self.now = datetime(2025, 1, 16, 0, 0, tzinfo=UTC)
        archived = writer.write(_record(1))
        writer.close()

        self.assertEqual(writer.metrics.snapshot()["rotations"], 1)
        self.assertEqual(self._files(), ["test.log", "test.log.2025-01-15.001"])
        self.assertEqual(self._read(os.path.basename(archived)), _record(0))
        self.assertEqual(self._read(), _record(1))

    def test_neither_condition_keeps_file(self):
        writer = self._writer(BothTrigger(period=RotationPeriod.DAILY, max_size=100))
        writer.write(_record(0))
        self.now = datetime(2025, 1, 15, 23, 0, tzinfo=UTC)
        self.assertIsNone(writer.write(_record(1)))
        writer.close()
        self.assertEqual(self._files(), ["test.log"])


class TestFailures(_WriterTestCase):
    def test_open_failure_raised(self):
        blocker = os.path.join(self.tmpdir, "afile")
        open(blocker, "w").close()
        self.path = os.path.join(blocker, "test.log")

        with self.assertRaises(OpenFailed):
            self._writer()

        writer = self._writer(lazy=True)
        with self.assertRaises(OpenFailed):
            writer.write(b"lost?\n")
        self.assertEqual(writer.state, WriterState.CLOSED)

    def test_write_failure_raised(self):
        writer = self._writer()
        real_file = writer._file
        broken = mock.Mock()
        broken.write.side_effect = OSError("disk full")
        writer._file = broken
        try:
            with self.assertRaises(WriteFailed):
                writer.write(b"data\n")
        finally:
            writer._file = real_file
            writer.close()
        self.assertEqual(writer.metrics.snapshot()["write_errors"], 1)

    def test_name_collision_falls_back(self):
        writer = self._writer(SizeTrigger(max_size=10))
        with open(os.path.join(self.tmpdir, "test.log.000001"), "wb") as f:
            f.write(b"manual")

        writer.write(b"12345678")
        archived = writer.write(b"abcdefgh")
        writer.close()

        self.assertEqual(os.path.basename(archived), "test.log.000002")
        self.assertEqual(self._read("test.log.000001"), b"manual")
        self.assertTrue(any(isinstance(e, NameCollision) for e in self.errors))

    def test_archive_rename_failure_moves_file_aside(self):
        writer = self._writer(SizeTrigger(max_size=50))
        writer.write(_record(0))
        real_rename = os.rename
        calls = []

        def flaky_rename(src, dst):
            calls.append(dst)
            if len(calls) == 1:
                raise PermissionError("denied")
            return real_rename(src, dst)

        with mock.patch("logrotor.writer.os.rename", side_effect=flaky_rename):
            archived = writer.write(_record(1))
        writer.close()

        self.assertIsNone(archived)
        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], RotationFailed)
        recovery = [n for n in self._files() if ".recovery-" in n]
        self.assertEqual(len(recovery), 1)
        self.assertEqual(self._read(recovery[0]), _record(0))
        self.assertEqual(self._read(), _record(1))
        self.assertEqual(writer.metrics.snapshot()["rotation_failures"], 1)

    def test_rename_failure_keeps_appending_without_retry_storm(self):
        writer = self._writer(SizeTrigger(max_size=50))
        writer.write(_record(0))

        with mock.patch("logrotor.writer.os.rename", side_effect=PermissionError("denied")):
            writer.write(_record(1))
            writer.write(b"tail\n")
        writer.close()

        self.assertEqual(len(self.errors), 1)
        self.assertIn("left in place", str(self.errors[0]))
        self.assertEqual(self._read(), _record(0) + _record(1) + b"tail\n")

    def test_reopen_failure_escalates(self):
        writer = self._writer(SizeTrigger(max_size=50))
        writer.write(_record(0))

        with mock.patch("logrotor.writer.open", side_effect=PermissionError("denied"), create=True):
            with self.assertRaises(RotationFailed):
                writer.write(_record(1))
        self.assertEqual(writer.state, WriterState.CLOSED)

        writer.write(_record(2))
        writer.close()
        self.assertEqual(self._read(), _record(2))
        self.assertEqual(self._read("test.log.000001"), _record(0))

    def test_prune_failure_is_not_fatal(self):
        writer = self._writer(SizeTrigger(max_size=30, max_files=1))
        with mock.patch("logrotor.retention.os.remove", side_effect=PermissionError("denied")):
            for i in range(3):
                writer.write(_record(i, size=20))
        writer.close()

        self.assertTrue(any(isinstance(e, PruneFailed) for e in self.errors))
        self.assertEqual(self._read(), _record(2, size=20))
        self.assertEqual(self._files(), ["test.log", "test.log.000001", "test.log.000002"])

    def test_error_callback_may_write_back(self):
        received = []

        def note(error):
            received.append(error)
            writer.write(f"noted {type(error).__name__}\n")

        writer = self._writer(SizeTrigger(max_size=30, max_files=1), on_error=note)

        def produce():
            for i in range(3):
                writer.write(_record(i, size=20))

        with mock.patch("logrotor.retention.os.remove", side_effect=PermissionError("denied")):
            t = threading.Thread(target=produce, daemon=True)
            t.start()
            t.join(timeout=5)
        self.assertFalse(t.is_alive(), "writer lock still held while on_error ran")
        writer.close()

        self.assertEqual(len(received), 1)
        self.assertIsInstance(received[0], PruneFailed)
        content = b"".join(self._read(name) for name in self._files())
        self.assertIn(b"noted PruneFailed\n", content)


class TestConcurrentWrites(_WriterTestCase):
    def test_concurrent_writes(self):
        writer = self._writer(SizeTrigger(max_size=2048))
        num_threads = 5
        writes_per_thread = 100
        errors = []

        def worker(thread_id):
            try:
                for i in range(writes_per_thread):
                    writer.write(f"thread-{thread_id}-line-{i}\n")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        writer.close()

        self.assertEqual(errors, [])

        all_lines = []
        for fname in os.listdir(self.tmpdir):
            with open(os.path.join(self.tmpdir, fname)) as f:
                all_lines.extend(f.readlines())

        self.assertEqual(len(all_lines), num_threads * writes_per_thread)
        for line in all_lines:
            self.assertTrue(line.endswith("\n"))
            self.assertRegex(line.strip(), r"^thread-\d+-line-\d+$")


if __name__ == "__main__":
    unittest.main()
