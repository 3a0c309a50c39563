import logging
import os
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional
from hevcwatch.config.models import DEFAULT_QSV_DEVICE
from hevcwatch.domain.events import JobProgressUpdated
from hevcwatch.domain.exceptions import ProgressSinkError
from hevcwatch.domain.models import ConversionJob, EncodeParameters, JobState, PixelFormatOption
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.housekeeping import DIAGNOSTICS_PREFIX, DIAGNOSTICS_SUFFIX
from hevcwatch.infrastructure.progress import ProgressMonitor

# Exit code reported when the ffmpeg binary cannot be started (shell convention).
LAUNCH_FAILURE_EXIT_CODE = 127

QSV_PIXEL_FORMATS = {
    PixelFormatOption.TEN_BIT: "p010le",
    PixelFormatOption.TWELVE_BIT: "p012le",
}


def format_elapsed(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


class FFmpegAdapter:
    """Runs hevc_qsv encodes and follows their progress stream."""

    def __init__(
        self,
        event_bus: EventBus,
        qsv_device: str = DEFAULT_QSV_DEVICE,
        temp_dir: Optional[Path] = None,
        debug: bool = False,
    ):
        self.event_bus = event_bus
        self.qsv_device = qsv_device
        self.temp_dir = temp_dir
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_command(self, job: ConversionJob, params: EncodeParameters) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            "ffmpeg",
            "-nostdin",
            "-y",  # Overwrite output files
            "-hide_banner",
        ]

        # 10/12-bit sources need the QSV device for the vpp_qsv format conversion
        qsv_format = QSV_PIXEL_FORMATS.get(params.pixel_format)
        if qsv_format:
            cmd.extend([
                "-init_hw_device", f"qsv=hw:{self.qsv_device}",
                "-filter_hw_device", "hw",
            ])

        cmd.extend(["-i", str(job.item.source_path)])

        if qsv_format:
            cmd.extend(["-vf", f"vpp_qsv=format={qsv_format}"])

        cmd.extend(["-c:v", "hevc_qsv"])
        if qsv_format:
            cmd.extend(["-pix_fmt", qsv_format])
        cmd.extend([
            "-global_quality", str(params.quality_level),
            "-preset", "slow",
            "-look_ahead", "1",
        ])

        # Audio is always copied; subtitles and extra tracks depend on the container
        cmd.extend(["-c:a", "copy"])
        cmd.extend(job.plan.subtitle_copy_args)
        cmd.extend(job.plan.stream_map_args)

        cmd.extend([
            "-movflags", "+faststart",
            "-loglevel", "error",
            "-nostats",
            "-progress", "pipe:1",
            str(job.plan.output_path),
        ])
        return cmd

    def _open_diagnostics(self):
        try:
            return tempfile.NamedTemporaryFile(
                mode="w+",
                encoding="utf-8",
                errors="replace",
                prefix=DIAGNOSTICS_PREFIX,
                suffix=DIAGNOSTICS_SUFFIX,
                dir=str(self.temp_dir) if self.temp_dir else None,
                delete=False,
            )
        except OSError as e:
            raise ProgressSinkError(f"Cannot create diagnostics file: {e}") from e

    def encode(self, job: ConversionJob, params: EncodeParameters, duration_seconds: int):
        """Runs ffmpeg for one job.

        Fills job.exit_code, job.diagnostics and job.elapsed_seconds and
        leaves the job in FINALIZING; the caller classifies the outcome.
        Raises ProgressSinkError before ffmpeg is started if the capture
        file cannot be created.
        """
        rel_path = job.item.relative_path
        cmd = self._build_command(job, params)
        if self.debug:
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        diagnostics = self._open_diagnostics()
        job.state = JobState.ENCODING

        def _on_milestone(milestone: int):
            self.logger.info(f"PROGRESS ({rel_path}): {milestone}%")
            self.event_bus.publish(JobProgressUpdated(job=job, milestone=milestone))

        monitor = ProgressMonitor(duration_seconds, on_milestone=_on_milestone)
        start_time = time.monotonic()
        try:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=diagnostics,
                    universal_newlines=True,
                    bufsize=1,
                )
            except OSError as e:
                job.state = JobState.FINALIZING
                job.exit_code = LAUNCH_FAILURE_EXIT_CODE
                job.diagnostics = f"Failed to start ffmpeg: {e}"
                job.elapsed_seconds = time.monotonic() - start_time
                return

            try:
                if process.stdout is not None:
                    monitor.consume(process.stdout)
                process.wait()
            except BaseException:
                # Never leave ffmpeg blocked on an unread pipe
                process.kill()
                process.wait()
                raise

            job.state = JobState.FINALIZING
            job.elapsed_seconds = time.monotonic() - start_time
            job.exit_code = process.returncode
            diagnostics.flush()
            diagnostics.seek(0)
            job.diagnostics = diagnostics.read()
            if self.debug:
                self.logger.debug(
                    f"FFMPEG_END: {rel_path} code={job.exit_code} elapsed={job.elapsed_seconds:.2f}s"
                )
        finally:
            diagnostics.close()
            try:
                os.unlink(diagnostics.name)
            except OSError as e:
                self.logger.warning(f"Failed to remove diagnostics file {diagnostics.name}: {e}")
