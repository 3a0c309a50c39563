"""Watch-folder orchestrator.

Repeats scan -> admit -> drain -> sleep. Each pass walks the input tree once,
hands every eligible file to the job pool in discovery order, waits for all
of them to finish and then sleeps before the next walk. Files that show up
while a pass is running are picked up by the following pass.
"""

import logging
import threading
from typing import Optional
from hevcwatch.config.models import ConverterConfig
from hevcwatch.domain.events import PassFinished, ScanFinished, ScanStarted
from hevcwatch.domain.models import ScanStats
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.file_scanner import FileScanner
from hevcwatch.pipeline.scheduler import JobPool
from hevcwatch.pipeline.worker import ConversionWorker


class Orchestrator:
    """Drives scan passes over the input tree.

    Args:
        config: immutable ConverterConfig built at startup.
        event_bus: EventBus for pass-level events.
        file_scanner: FileScanner bound to the input/output roots.
        worker: ConversionWorker executing one job per call.
        job_pool: optional JobPool; one sized by config.max_jobs is created otherwise.
    """

    def __init__(
        self,
        config: ConverterConfig,
        event_bus: EventBus,
        file_scanner: FileScanner,
        worker: ConversionWorker,
        job_pool: Optional[JobPool] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.file_scanner = file_scanner
        self.worker = worker
        self.job_pool = job_pool or JobPool(config.max_jobs)
        self.logger = logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self.passes_completed = 0

    def request_stop(self):
        """Ends the loop after the current pass (or immediately while sleeping)."""
        self._stop_event.set()

    def run_pass(self) -> ScanStats:
        input_dir = self.config.input_dir
        self.event_bus.publish(ScanStarted(directory=input_dir))

        if not input_dir.is_dir():
            self.logger.warning(f"Input directory does not exist: {input_dir}")
            stats = ScanStats()
        else:
            for job in self.file_scanner.scan():
                self.job_pool.submit(self.worker.run, job)
            stats = self.file_scanner.stats

        self.logger.info(
            f"Scan finished: found={stats.found}, queued={stats.queued}, "
            f"already_converted={stats.already_converted}, skipped_log={stats.skipped_log}, "
            f"duplicate_output={stats.duplicate_output}, unreadable={stats.unreadable}"
        )
        self.event_bus.publish(ScanFinished(stats=stats))

        self.job_pool.drain()
        self.passes_completed += 1
        return stats

    def run(self, max_passes: Optional[int] = None):
        """Loops until request_stop() is called or max_passes is reached."""
        self.logger.info(
            f"Watching {self.config.input_dir} -> {self.config.output_dir} "
            f"(max_jobs={self.config.max_jobs}, loop_wait={self.config.loop_wait_seconds}s)"
        )
        try:
            while not self._stop_event.is_set():
                self.run_pass()
                self.event_bus.publish(PassFinished(wait_seconds=self.config.loop_wait_seconds))
                if max_passes is not None and self.passes_completed >= max_passes:
                    break
                self.logger.info(
                    f"Pass complete, next scan in {self.config.loop_wait_seconds} seconds"
                )
                self._stop_event.wait(self.config.loop_wait_seconds)
        finally:
            self.job_pool.shutdown()
