import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List
from hevcwatch.config.models import ConverterConfig
from hevcwatch.domain.events import DirectoryPruned, SourceDeleted
from hevcwatch.domain.models import ConversionJob, ErrorRecord, FailureKind
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.housekeeping import HousekeepingService

ERROR_LOG_NAME = "error.log"

FAILURE_MESSAGES = {
    FailureKind.DIRECTORY_CREATE: "Could not create the output directory.",
    FailureKind.PROGRESS_SINK: "Could not create the progress/diagnostics capture.",
    FailureKind.ENCODE: "Conversion failed.",
}


class OutcomeHandler:
    """Applies the consequences of a finished job.

    Success removes the source (when enabled) and prunes the folders it
    leaves empty. Failure appends an ErrorRecord to the output folder's
    error.log and a summary line to the global error log. The source of a
    failed job is never touched.
    """

    def __init__(self, config: ConverterConfig, event_bus: EventBus, housekeeping: HousekeepingService):
        self.config = config
        self.event_bus = event_bus
        self.housekeeping = housekeeping
        self.logger = logging.getLogger(__name__)
        self._global_log_lock = threading.Lock()

    def handle_success(self, job: ConversionJob) -> List[Path]:
        """Returns the directories pruned after deleting the source."""
        rel_path = job.item.relative_path
        if not self.config.delete_source:
            self.logger.info(f"Conversion succeeded, source kept (DELETE_SOURCE disabled): {rel_path}")
            return []

        source = job.item.source_path
        try:
            source.unlink()
        except FileNotFoundError:
            self.logger.warning(f"Source already gone before deletion: {source}")
        except OSError as e:
            self.logger.error(f"Failed to delete source {source}: {e}")
            return []
        else:
            self.logger.info(f"Deleted source file: {rel_path}")
            self.event_bus.publish(SourceDeleted(job=job))

        pruned = self.housekeeping.prune_empty_parents(source.parent, self.config.input_dir)
        for directory in pruned:
            self.event_bus.publish(DirectoryPruned(directory=directory))
        return pruned

    def build_record(self, job: ConversionJob) -> ErrorRecord:
        message = job.error_message or FAILURE_MESSAGES.get(job.failure, "Conversion failed.")
        return ErrorRecord(
            timestamp=datetime.now(),
            relative_path=job.item.relative_path,
            source_path=job.item.source_path,
            output_path=job.plan.output_path,
            exit_code=job.exit_code,
            message=message,
            diagnostics=job.diagnostics,
        )

    def handle_failure(self, job: ConversionJob) -> ErrorRecord:
        record = self.build_record(job)
        self._append_directory_log(record)
        self._append_global_log(record)
        return record

    def _append_directory_log(self, record: ErrorRecord):
        log_path = record.output_path.parent / ERROR_LOG_NAME
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(record.render())
        except OSError as e:
            self.logger.error(f"Failed to write {log_path}: {e}")

    def _append_global_log(self, record: ErrorRecord):
        self.append_global(record.summary())

    def append_global(self, line: str):
        """Appends one line to the global error log; write errors are logged."""
        log_path = self.config.global_error_log
        if not line.endswith("\n"):
            line += "\n"
        with self._global_log_lock:
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(log_path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                self.logger.error(f"Failed to write global error log {log_path}: {e}")
