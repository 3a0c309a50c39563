import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

DIAGNOSTICS_PREFIX = "ffmpeg_log_"
DIAGNOSTICS_SUFFIX = ".log"

class HousekeepingService:
    """Filesystem cleanup: stale diagnostics files and empty source folders."""

    def __init__(self, temp_dir: Optional[Path] = None):
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.logger = logging.getLogger(__name__)

    def missing_tools(self, tools: Iterable[str]) -> List[str]:
        """Returns the executables from `tools` that are not on PATH."""
        return [tool for tool in tools if shutil.which(tool) is None]

    def cleanup_stale_diagnostics(self) -> int:
        """Removes ffmpeg diagnostics files left in the temp dir by a killed run."""
        removed = 0
        try:
            entries = list(self.temp_dir.iterdir())
        except OSError:
            return 0
        for entry in entries:
            if entry.name.startswith(DIAGNOSTICS_PREFIX) and entry.name.endswith(DIAGNOSTICS_SUFFIX):
                try:
                    entry.unlink()
                    removed += 1
                except OSError as e:
                    self.logger.warning(f"Could not remove stale diagnostics {entry}: {e}")
        if removed:
            self.logger.info(f"Removed {removed} stale ffmpeg diagnostics file(s) from {self.temp_dir}")
        return removed

    def prune_empty_parents(self, start_dir: Path, stop_at: Path) -> List[Path]:
        """Removes empty directories from start_dir upwards.

        The walk stops at stop_at (never removed), at the filesystem root,
        at any directory outside stop_at, and at the first directory that is
        not empty or cannot be removed. Returns the removed directories.
        """
        removed: List[Path] = []
        root = Path(os.path.abspath(stop_at))
        current = Path(os.path.abspath(start_dir))

        while current != root and current != current.parent:
            if root not in current.parents:
                break
            try:
                if any(current.iterdir()):
                    break
                current.rmdir()
            except OSError:
                break
            self.logger.info(f"Removed empty source directory: {current}")
            removed.append(current)
            current = current.parent

        return removed
