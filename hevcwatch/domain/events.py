"""Domain events for the watch-folder conversion pipeline.

Events flow through the EventBus and decouple the orchestrator and workers
from console reporting. Workers publish from pool threads, so subscribers
must not assume they run on the main thread.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel
from .models import ConversionJob, ScanStats


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobEvent(Event):
    """Base class for events related to a single conversion job."""

    job: ConversionJob


class JobStarted(JobEvent):
    """Emitted when a worker picks up a job."""

    pass


class JobProgressUpdated(JobEvent):
    """Emitted once per decile milestone (10, 20, ... 100)."""

    milestone: int


class JobCompleted(JobEvent):
    """Emitted when ffmpeg exits with code 0."""

    pass


class JobFailed(JobEvent):
    """Emitted when a job ends in FAILED; an ErrorRecord has been written."""

    error_message: str


class SourceDeleted(JobEvent):
    """Emitted after the source of a succeeded job was removed."""

    pass


class DirectoryPruned(Event):
    """Emitted for every empty source directory removed after a deletion."""

    directory: Path


class ScanStarted(Event):
    """Emitted when a scan pass begins walking the input root."""

    directory: Path


class ScanFinished(Event):
    """Emitted after every discovered job of a pass has been admitted."""

    stats: ScanStats


class PassFinished(Event):
    """Emitted after all workers of a pass have finished."""

    wait_seconds: int
