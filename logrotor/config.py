"""Configuration module: frozen dataclasses loaded from env vars and an optional YAML file."""

import logging
import os
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo

import yaml

from logrotor.rotation import (
    BothTrigger,
    NeverTrigger,
    RotationPeriod,
    RotationTrigger,
    SizeTrigger,
    TimeTrigger,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10 MB
FORMATS = ("text", "json")
QUEUE_POLICIES = ("drop_newest", "block")

_UNITS = {"K": 1024, "M": 1024 * 1024, "G": 1024 * 1024 * 1024}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def parse_size(value) -> int:
    """Resolve a size such as ``512K``, ``5m`` or ``1G`` to bytes.

    A bare number (int or digit string) is taken as kilobytes.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid size: {value!r}")
    text = str(value).strip()
    if not text:
        raise ValueError("empty size string")
    unit = "K"
    if text[-1].isalpha():
        unit = text[-1].upper()
        text = text[:-1].strip()
    if unit not in _UNITS:
        raise ValueError(f"invalid unit: {unit}, supported: K/M/G")
    try:
        number = int(text)
    except ValueError:
        raise ValueError(f"invalid number: {text}") from None
    if number <= 0:
        raise ValueError(f"size must be positive, got {number}")
    return number * _UNITS[unit]


def _parse_period(value) -> RotationPeriod:
    try:
        return RotationPeriod(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"unknown rotation period: {value}") from None


def _parse_max_files(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def parse_rotation(value) -> RotationTrigger:
    """Build a rotation trigger from a plain string or a mapping.

    Plain strings pick defaults: ``size`` is 10M with unlimited retention,
    ``time`` is daily, ``both`` is daily plus 10M. Mappings name the pieces
    explicitly: ``{type, period, max_size, max_files}``.
    """
    if value is None:
        return NeverTrigger()

    if isinstance(value, str):
        kind = value.strip().lower()
        if kind == "never":
            return NeverTrigger()
        if kind == "size":
            return SizeTrigger(max_size=DEFAULT_MAX_SIZE)
        if kind == "time":
            return TimeTrigger(period=RotationPeriod.DAILY)
        if kind == "both":
            return BothTrigger(period=RotationPeriod.DAILY, max_size=DEFAULT_MAX_SIZE)
        raise ValueError(f"unknown rotation type: {value}")

    if not isinstance(value, dict):
        raise ValueError(f"rotation must be a string or a mapping, got {type(value).__name__}")

    kind = value.get("type")
    kind = kind.strip().lower() if isinstance(kind, str) else kind
    max_files = _parse_max_files(value.get("max_files"))

    if kind in (None, "never"):
        return NeverTrigger()
    if kind == "time":
        if value.get("period") is None:
            raise ValueError("period is required for time-based rotation")
        return TimeTrigger(period=_parse_period(value["period"]), max_files=max_files)
    if kind == "size":
        if value.get("max_size") is None:
            raise ValueError("max_size is required for size-based rotation")
        return SizeTrigger(max_size=parse_size(value["max_size"]), max_files=max_files)
    if kind == "both":
        if value.get("period") is None:
            raise ValueError("period is required for time+size rotation")
        if value.get("max_size") is None:
            raise ValueError("max_size is required for time+size rotation")
        return BothTrigger(
            period=_parse_period(value["period"]),
            max_size=parse_size(value["max_size"]),
            max_files=max_files,
        )
    raise ValueError(f"unknown rotation type: {kind}")


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Turn a configured zone name into a tzinfo; None keeps local time."""
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@dataclass(frozen=True)
class FileLogConfig:
    path: str
    rotation: RotationTrigger = field(default_factory=NeverTrigger)
    timezone: str | None = None


@dataclass(frozen=True)
class QueueConfig:
    enabled: bool = True
    capacity: int = 1024
    policy: str = "drop_newest"
    block_timeout: float = 1.0
    report_interval: float = 60.0

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"queue capacity must be at least 1, got {self.capacity}")
        if self.policy not in QUEUE_POLICIES:
            raise ValueError(f"unknown queue policy: {self.policy}")


@dataclass(frozen=True)
class LogConfig:
    console: bool = False
    level: str = "INFO"
    format: str = "text"
    target: bool = True
    thread_ids: bool = False
    thread_names: bool = False
    file: FileLogConfig | None = None
    queue: QueueConfig = field(default_factory=QueueConfig)

    def __post_init__(self):
        if self.format not in FORMATS:
            raise ValueError(f"unknown log format: {self.format}")


def load_yaml_config(path: str | None) -> dict:
    """Load the ``log`` section of a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data.get("log", data)


def _rotation_input(file_data: dict):
    """Rotation settings from YAML, overridden field by field by env vars."""
    raw = file_data.get("rotation")
    env_type = os.environ.get("LOG_ROTATION")
    if env_type is None:
        return raw

    settings = dict(raw) if isinstance(raw, dict) else {}
    settings["type"] = env_type.strip().lower()
    for env_key, key in (
        ("LOG_ROTATION_PERIOD", "period"),
        ("LOG_MAX_SIZE", "max_size"),
        ("LOG_MAX_FILES", "max_files"),
    ):
        if env_key in os.environ:
            settings[key] = os.environ[env_key]
    if settings["type"] in ("time", "both"):
        settings.setdefault("period", RotationPeriod.DAILY.value)
    if settings["type"] in ("size", "both"):
        settings.setdefault("max_size", f"{DEFAULT_MAX_SIZE // (1024 * 1024)}M")
    return settings


def load_config(yaml_data: dict | None = None) -> LogConfig:
    """Build LogConfig from parsed YAML data, then env vars on top."""
    if yaml_data is None:
        yaml_data = load_yaml_config(os.environ.get("CONFIG_PATH"))

    file_data = yaml_data.get("file") or {}
    if isinstance(file_data, str):
        file_data = {"path": file_data}
    queue_data = yaml_data.get("queue") or {}

    file_config = None
    path = os.environ.get("LOG_FILE", file_data.get("path"))
    if path:
        file_config = FileLogConfig(
            path=str(path),
            rotation=parse_rotation(_rotation_input(file_data)),
            timezone=os.environ.get("LOG_TIMEZONE", file_data.get("timezone")),
        )

    queue_config = QueueConfig(
        enabled=_parse_bool(
            os.environ.get("LOG_QUEUE_ENABLED", str(queue_data.get("enabled", QueueConfig.enabled)))
        ),
        capacity=int(os.environ.get("LOG_QUEUE_CAPACITY", queue_data.get("capacity", QueueConfig.capacity))),
        policy=os.environ.get("LOG_QUEUE_POLICY", queue_data.get("policy", QueueConfig.policy)),
        block_timeout=float(
            os.environ.get("LOG_QUEUE_TIMEOUT", queue_data.get("block_timeout", QueueConfig.block_timeout))
        ),
        report_interval=float(queue_data.get("report_interval", QueueConfig.report_interval)),
    )

    return LogConfig(
        console=_parse_bool(os.environ.get("LOG_CONSOLE", str(yaml_data.get("console", False)))),
        level=os.environ.get("LOG_LEVEL", yaml_data.get("level", LogConfig.level)).upper(),
        format=os.environ.get("LOG_FORMAT", yaml_data.get("format", LogConfig.format)).lower(),
        target=_parse_bool(os.environ.get("LOG_TARGET", str(yaml_data.get("target", LogConfig.target)))),
        thread_ids=_parse_bool(
            os.environ.get("LOG_THREAD_IDS", str(yaml_data.get("thread_ids", LogConfig.thread_ids)))
        ),
        thread_names=_parse_bool(
            os.environ.get("LOG_THREAD_NAMES", str(yaml_data.get("thread_names", LogConfig.thread_names)))
        ),
        file=file_config,
        queue=queue_config,
    )
