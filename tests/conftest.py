"""Shared pytest fixtures for the logrotor test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest


class Clock:
    """Settable clock usable as a ``time_func``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> Clock:
    """A clock frozen at 2025-01-15 10:00 UTC."""
    return Clock(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def log_path(tmp_path) -> str:
    """Path of the active log file inside a fresh directory."""
    return str(tmp_path / "app.log")
