from typing import List


class HevcWatchError(Exception):
    """Base class for errors that stop the watcher."""


class DependencyMissingError(HevcWatchError):
    """Raised at startup when a required executable is not on PATH."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Required tools not found on PATH: {', '.join(missing)}")


class ProgressSinkError(HevcWatchError):
    """Raised when the per-job diagnostics/progress capture cannot be created."""
