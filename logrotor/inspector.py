"""Inspector logic: list and read the active log file and its archives."""

import os

from logrotor.naming import ArchiveNamer
from logrotor.rotation import RotationTrigger, trigger_period


def list_log_files(path: str, rotation: RotationTrigger | None = None) -> list[tuple[str, int]]:
    """Return ``(name, size)`` for archives oldest first, then the active file.

    Recovery files left by a failed rotation are listed after the archives.
    """
    period = trigger_period(rotation) if rotation is not None else None
    namer = ArchiveNamer(path, period)
    names = [os.path.basename(a.path) for a in namer.list_archives()]

    recovery_prefix = namer.filename + ".recovery-"
    try:
        entries = sorted(os.listdir(namer.directory))
    except FileNotFoundError:
        return []
    names.extend(name for name in entries if name.startswith(recovery_prefix))
    if namer.filename in entries:
        names.append(namer.filename)

    return [(name, os.path.getsize(os.path.join(namer.directory, name))) for name in names]


def read_file(log_dir: str, filename: str) -> str:
    """Read a log file from *log_dir*. Only bare file names are accepted."""
    if os.path.basename(filename) != filename:
        raise ValueError(f"Not a file name: {filename}")
    path = os.path.join(log_dir, filename)
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
