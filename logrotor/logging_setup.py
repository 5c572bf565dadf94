"""Attach console and rotating-file output to the standard logging module."""

import json
import logging
import sys
from datetime import datetime, timezone

from logrotor.config import LogConfig
from logrotor.metrics import WriterMetrics
from logrotor.write_queue import BackpressurePolicy, WriteQueue
from logrotor.writer import RotatingWriter

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def text_format(target: bool = True, thread_ids: bool = False, thread_names: bool = False) -> str:
    """Build the text line layout from the output toggles.

    The defaults give ``TEXT_FORMAT``.
    """
    fmt = "%(asctime)s"
    threads = []
    if thread_names:
        threads.append("%(threadName)s")
    if thread_ids:
        threads.append("%(thread)d")
    if threads:
        fmt += " <" + ":".join(threads) + ">"
    if target:
        fmt += " [%(name)s]"
    return fmt + " %(levelname)s %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, target: bool = True, thread_ids: bool = False, thread_names: bool = False):
        super().__init__()
        self.target = target
        self.thread_ids = thread_ids
        self.thread_names = thread_names

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).astimezone()
        payload = {
            "timestamp": ts.isoformat(timespec="milliseconds"),
            "level": record.levelname,
        }
        if self.target:
            payload["logger"] = record.name
        if self.thread_ids:
            payload["thread_id"] = record.thread
        if self.thread_names:
            payload["thread_name"] = record.threadName
        payload["message"] = record.getMessage()
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class WriterHandler(logging.Handler):
    """Formats records as newline-terminated lines and hands them to a sink.

    The sink is a WriteQueue (``submit``) or a RotatingWriter (``write``).
    The engine's own records are skipped: they are emitted while the writer
    lock is held.
    """

    def __init__(self, sink):
        super().__init__()
        self._sink = sink
        self._submit = getattr(sink, "submit", None) or sink.write
        self.addFilter(lambda record: not record.name.startswith("logrotor."))

    def emit(self, record: logging.LogRecord):
        try:
            line = self.format(record) + "\n"
            self._submit(line.encode("utf-8"))
        except Exception:
            self.handleError(record)


class LoggingHandle:
    """Owns everything ``init_logging`` installed; ``close()`` tears it down."""

    def __init__(self, logger: logging.Logger, handlers: list[logging.Handler],
                 writer: RotatingWriter | None = None, write_queue: WriteQueue | None = None,
                 previous_level: int | None = None, previous_propagate: bool | None = None):
        self.logger = logger
        self.handlers = handlers
        self.writer = writer
        self.write_queue = write_queue
        self._previous_level = previous_level
        self._previous_propagate = previous_propagate
        self._closed = False

    @property
    def metrics(self) -> WriterMetrics | None:
        return self.writer.metrics if self.writer is not None else None

    def close(self):
        if self._closed:
            return
        self._closed = True
        for handler in self.handlers:
            self.logger.removeHandler(handler)
            handler.close()
        if self._previous_level is not None:
            self.logger.setLevel(self._previous_level)
        if self._previous_propagate is not None:
            self.logger.propagate = self._previous_propagate
        if self.write_queue is not None:
            self.write_queue.close()
        elif self.writer is not None:
            self.writer.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def _formatter(config: LogConfig) -> logging.Formatter:
    if config.format == "json":
        return JsonFormatter(config.target, config.thread_ids, config.thread_names)
    return logging.Formatter(text_format(config.target, config.thread_ids, config.thread_names))


def init_logging(config: LogConfig, logger_name: str | None = None,
                 time_func=None, on_error=None, propagate: bool | None = None) -> LoggingHandle:
    """Install handlers described by *config* on a logger (root by default).

    Each call builds its own writer and queue, so independent handles can
    live side by side (e.g. one per test). When *propagate* is given it is
    set on the logger and restored by ``close()``.
    """
    target = logging.getLogger(logger_name)
    handlers: list[logging.Handler] = []
    writer = None
    write_queue = None

    # The writer opens first: an OpenFailed leaves the logger untouched.
    if config.file is not None:
        writer = RotatingWriter(config.file, time_func=time_func, on_error=on_error)
        sink = writer
        if config.queue.enabled:
            write_queue = WriteQueue(
                writer,
                capacity=config.queue.capacity,
                policy=BackpressurePolicy(config.queue.policy),
                block_timeout=config.queue.block_timeout,
                report_interval=config.queue.report_interval,
                on_error=on_error,
            )
            write_queue.start()
            sink = write_queue
        file_handler = WriterHandler(sink)
        file_handler.setFormatter(_formatter(config))
        handlers.append(file_handler)

    if config.console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(config))
        handlers.insert(0, console)

    previous_level = target.level
    previous_propagate = None
    target.setLevel(config.level)
    if propagate is not None:
        previous_propagate = target.propagate
        target.propagate = propagate
    for handler in handlers:
        target.addHandler(handler)

    return LoggingHandle(target, handlers, writer=writer, write_queue=write_queue,
                         previous_level=previous_level, previous_propagate=previous_propagate)
