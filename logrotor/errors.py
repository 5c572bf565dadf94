"""Error kinds surfaced by the rotation engine."""


class RotationError(Exception):
    """Base class for all errors raised or reported by the engine."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class OpenFailed(RotationError):
    """The active file could not be created or opened."""


class WriteFailed(RotationError):
    """Appending to the active file failed (disk full, I/O error)."""


class RotationFailed(RotationError):
    """The archive rename or the reopen step of a rotation failed."""


class NameCollision(RotationError):
    """No free archive name could be found for a rotation."""


class PruneFailed(RotationError):
    """One or more archive deletions failed. Non-fatal."""

    def __init__(self, message: str, failed: list[tuple[str, str]]):
        super().__init__(message)
        self.failed = failed
