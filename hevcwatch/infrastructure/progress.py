"""Decile progress tracking for one ffmpeg `-progress` stream.

ffmpeg writes blocks of `key=value` lines. `out_time_ms` holds the output
timestamp in microseconds (the name is historical); newer builds also emit
`out_time_us` with the same value.
"""

from typing import Callable, Iterable, List, Optional

MICROSECONDS = 1_000_000
MILESTONE_STEP = 10
MAX_PERCENT = 100
TIME_KEYS = ("out_time_ms", "out_time_us")


def parse_progress_line(line: str) -> Optional[int]:
    """Returns the elapsed output time in microseconds, or None."""
    if "=" not in line:
        return None
    key, value = line.strip().split("=", 1)
    if key.strip() not in TIME_KEYS:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)


class ProgressMonitor:
    """Turns a progress stream into 10% milestones.

    Milestones are strictly increasing, each emitted at most once and never
    above 100.
    """

    def __init__(self, duration_seconds: int, on_milestone: Optional[Callable[[int], None]] = None):
        self.duration_seconds = duration_seconds
        self.on_milestone = on_milestone
        self.last_milestone = 0
        self.emitted: List[int] = []

    def percent_for(self, out_time_us: int) -> int:
        if self.duration_seconds <= 0:
            return 0
        seconds = out_time_us // MICROSECONDS
        return (seconds * 100) // self.duration_seconds

    def feed(self, line: str) -> List[int]:
        """Consumes one line and returns the milestones it crossed."""
        out_time = parse_progress_line(line)
        if out_time is None:
            return []
        percent = min(self.percent_for(out_time), MAX_PERCENT)
        crossed = []
        next_milestone = self.last_milestone + MILESTONE_STEP
        while next_milestone <= percent:
            crossed.append(next_milestone)
            self.last_milestone = next_milestone
            next_milestone += MILESTONE_STEP
        for milestone in crossed:
            self.emitted.append(milestone)
            if self.on_milestone:
                self.on_milestone(milestone)
        return crossed

    def consume(self, lines: Iterable[str]) -> List[int]:
        """Reads the stream until it closes; returns every milestone emitted."""
        for line in lines:
            self.feed(line)
        return list(self.emitted)
