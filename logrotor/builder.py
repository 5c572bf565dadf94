"""Fluent construction of a LogConfig, ending in init_logging."""

from dataclasses import replace

from logrotor.config import FileLogConfig, LogConfig, QueueConfig
from logrotor.logging_setup import LoggingHandle, init_logging
from logrotor.rotation import RotationTrigger

DEFAULT_FILE = "app.log"


class LogBuilder:
    """Chainable setters over a frozen LogConfig.

    Usage::

        handle = (LogBuilder()
                  .with_console(True)
                  .with_level("debug")
                  .with_file("/var/log/app.log")
                  .with_rotation(SizeTrigger(max_size=10 * 1024 * 1024, max_files=5))
                  .init())
    """

    def __init__(self, config: LogConfig | None = None):
        self._config = config or LogConfig()

    @classmethod
    def from_config(cls, config: LogConfig) -> "LogBuilder":
        return cls(config)

    def _set(self, **changes) -> "LogBuilder":
        self._config = replace(self._config, **changes)
        return self

    def with_console(self, enabled: bool) -> "LogBuilder":
        return self._set(console=enabled)

    def with_level(self, level: str) -> "LogBuilder":
        return self._set(level=level.upper())

    def with_format(self, fmt: str) -> "LogBuilder":
        return self._set(format=fmt.lower())

    def with_file(self, path: str) -> "LogBuilder":
        """Log to *path*, keeping any rotation already chosen."""
        current = self._config.file
        if current is None:
            return self._set(file=FileLogConfig(path=str(path)))
        return self._set(file=replace(current, path=str(path)))

    def with_file_config(self, file_config: FileLogConfig) -> "LogBuilder":
        return self._set(file=file_config)

    def with_rotation(self, rotation: RotationTrigger) -> "LogBuilder":
        """Set the rotation trigger; without a file, ``app.log`` is used."""
        current = self._config.file or FileLogConfig(path=DEFAULT_FILE)
        return self._set(file=replace(current, rotation=rotation))

    def with_timezone(self, name: str | None) -> "LogBuilder":
        current = self._config.file or FileLogConfig(path=DEFAULT_FILE)
        return self._set(file=replace(current, timezone=name))

    def with_queue(self, queue: QueueConfig) -> "LogBuilder":
        return self._set(queue=queue)

    def with_target(self, target: bool) -> "LogBuilder":
        return self._set(target=target)

    def with_thread_ids(self, thread_ids: bool) -> "LogBuilder":
        return self._set(thread_ids=thread_ids)

    def with_thread_names(self, thread_names: bool) -> "LogBuilder":
        return self._set(thread_names=thread_names)

    def build(self) -> LogConfig:
        return self._config

    def init(self, logger_name: str | None = None, time_func=None, on_error=None,
             propagate: bool | None = None) -> LoggingHandle:
        return init_logging(self._config, logger_name=logger_name, time_func=time_func,
                            on_error=on_error, propagate=propagate)
