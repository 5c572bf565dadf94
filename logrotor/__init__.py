"""logrotor: rotating log-file writer with calendar/size triggers and retention."""

from logrotor.builder import LogBuilder
from logrotor.config import FileLogConfig, LogConfig, QueueConfig, load_config
from logrotor.errors import (
    NameCollision,
    OpenFailed,
    PruneFailed,
    RotationError,
    RotationFailed,
    WriteFailed,
)
from logrotor.logging_setup import LoggingHandle, init_logging
from logrotor.rotation import (
    BothTrigger,
    NeverTrigger,
    RotationPeriod,
    RotationTrigger,
    SizeTrigger,
    TimeTrigger,
)
from logrotor.write_queue import BackpressurePolicy, WriteQueue
from logrotor.writer import RotatingWriter, WriterState

__version__ = "0.1.0"
