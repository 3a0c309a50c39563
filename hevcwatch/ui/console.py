from typing import List, Optional
from rich.console import Console
from rich.markup import escape
from hevcwatch.config.models import ConverterConfig
from hevcwatch.domain.events import (
    DirectoryPruned, JobCompleted, JobFailed, JobProgressUpdated, JobStarted,
    PassFinished, ScanFinished, ScanStarted, SourceDeleted,
)
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.ffmpeg import format_elapsed


def build_config_lines(config: ConverterConfig) -> List[str]:
    return [
        "--- hevcwatch: hardware HEVC conversion ---",
        "Configuration:",
        f" - Input directory   : {config.input_dir}",
        f" - Output directory  : {config.output_dir}",
        f" - Parallel jobs     : {config.max_jobs}",
        f" - Delete source     : {config.delete_source}",
        f" - Loop delay        : {config.loop_wait_seconds} seconds",
        f" - Global error log  : {config.global_error_log}",
        f" - QSV device        : {config.qsv_device}",
        "-------------------------------------------",
    ]


class ConsoleReporter:
    """Subscribes to EventBus and prints severity-prefixed console lines."""

    STYLES = {
        "INFO": "green",
        "ERROR": "bold red",
        "PROGRESS": "cyan",
    }

    def __init__(self, bus: EventBus, console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console(highlight=False, soft_wrap=True)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(ScanStarted, self.on_scan_started)
        self.bus.subscribe(ScanFinished, self.on_scan_finished)
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(JobProgressUpdated, self.on_job_progress)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(SourceDeleted, self.on_source_deleted)
        self.bus.subscribe(DirectoryPruned, self.on_directory_pruned)
        self.bus.subscribe(PassFinished, self.on_pass_finished)

    def _line(self, severity: str, message: str):
        style = self.STYLES.get(severity, "default")
        self.console.print(f"[{style}]{severity}[/]: {escape(message)}", highlight=False)

    def show_config(self, config: ConverterConfig):
        for line in build_config_lines(config):
            self.console.print(line, markup=False, highlight=False)

    def error(self, message: str):
        self._line("ERROR", message)

    def on_scan_started(self, event: ScanStarted):
        self._line("INFO", f"Scanning {event.directory}")

    def on_scan_finished(self, event: ScanFinished):
        stats = event.stats
        if stats.queued:
            self._line("INFO", f"{stats.queued} file(s) queued ({stats.already_converted} already converted)")

    def on_job_started(self, event: JobStarted):
        self._line("INFO", f"Conversion started: {event.job.item.relative_path}")

    def on_job_progress(self, event: JobProgressUpdated):
        rel_path = escape(str(event.job.item.relative_path))
        self.console.print(f"[cyan]PROGRESS[/] ({rel_path}): {event.milestone}%", highlight=False)

    def on_job_completed(self, event: JobCompleted):
        elapsed = format_elapsed(event.job.elapsed_seconds or 0.0)
        self._line("INFO", f"Conversion succeeded: {event.job.item.relative_path} (duration: {elapsed})")

    def on_job_failed(self, event: JobFailed):
        self._line("ERROR", f"Conversion failed: {event.job.item.relative_path} - {event.error_message}")

    def on_source_deleted(self, event: SourceDeleted):
        self._line("INFO", f"Source file deleted: {event.job.item.relative_path}")

    def on_directory_pruned(self, event: DirectoryPruned):
        self._line("INFO", f"Empty source directory removed: {event.directory}")

    def on_pass_finished(self, event: PassFinished):
        self._line("INFO", f"--- Pass finished. Waiting {event.wait_seconds} seconds before the next one. ---")
