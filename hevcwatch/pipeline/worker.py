"""Per-file conversion state machine.

STARTING -> PROBING -> ENCODING -> FINALIZING -> SUCCEEDED | FAILED

Every exit path ends in one of the two terminal states and goes through the
OutcomeHandler; nothing raised here escapes to the job pool.
"""

import logging
from typing import Optional
from hevcwatch.config.rate_control import format_bps_human, global_quality_for_bitrate
from hevcwatch.domain.events import JobCompleted, JobFailed, JobStarted
from hevcwatch.domain.exceptions import ProgressSinkError
from hevcwatch.domain.models import ConversionJob, EncodeParameters, FailureKind, JobState
from hevcwatch.infrastructure.event_bus import EventBus
from hevcwatch.infrastructure.ffmpeg import FFmpegAdapter, format_elapsed
from hevcwatch.infrastructure.ffprobe import FFprobeAdapter
from hevcwatch.pipeline.outcome import OutcomeHandler


class ConversionWorker:
    def __init__(
        self,
        event_bus: EventBus,
        ffprobe_adapter: FFprobeAdapter,
        ffmpeg_adapter: FFmpegAdapter,
        outcome_handler: OutcomeHandler,
    ):
        self.event_bus = event_bus
        self.ffprobe_adapter = ffprobe_adapter
        self.ffmpeg_adapter = ffmpeg_adapter
        self.outcome_handler = outcome_handler
        self.logger = logging.getLogger(__name__)

    def run(self, job: ConversionJob) -> ConversionJob:
        rel_path = job.item.relative_path
        # Admission can lag the scan; never overwrite an output that appeared meanwhile
        if job.plan.output_path.exists():
            self.logger.info(f"Output already exists at admission, skipping: {rel_path}")
            return job

        job.state = JobState.STARTING
        self.logger.info(f"Conversion started: {rel_path}")
        self.event_bus.publish(JobStarted(job=job))

        try:
            try:
                job.plan.output_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self._fail(job, FailureKind.DIRECTORY_CREATE, f"Cannot create output directory: {e}")
                return job

            job.state = JobState.PROBING
            params = self._select_parameters(job)

            try:
                self.ffmpeg_adapter.encode(job, params, job.duration_seconds or 1)
            except ProgressSinkError as e:
                self._fail(job, FailureKind.PROGRESS_SINK, str(e))
                return job

            if job.exit_code == 0:
                self._succeed(job)
            else:
                self._fail(job, FailureKind.ENCODE)
        except Exception as e:
            # Unexpected errors still end the job instead of killing the pool thread
            self.logger.exception(f"Unexpected error while converting {rel_path}")
            if not job.finished:
                self._fail(job, FailureKind.ENCODE, f"Unexpected error: {e}")

        return job

    def _select_parameters(self, job: ConversionJob) -> EncodeParameters:
        probe = self.ffprobe_adapter.probe(job.item.source_path)
        params = EncodeParameters(
            quality_level=global_quality_for_bitrate(probe.bitrate),
            pixel_format=probe.pixel_format,
        )
        job.parameters = params
        job.duration_seconds = probe.duration
        self.logger.info(
            f"Parameters for {job.item.relative_path}: bitrate={format_bps_human(probe.bitrate)} "
            f"global_quality={params.quality_level} pix_fmt={params.pixel_format.value} "
            f"duration={probe.duration}s"
        )
        return params

    def _succeed(self, job: ConversionJob):
        job.state = JobState.SUCCEEDED
        elapsed = format_elapsed(job.elapsed_seconds or 0.0)
        self.logger.info(f"Conversion succeeded: {job.item.relative_path} (duration: {elapsed})")
        self.event_bus.publish(JobCompleted(job=job))
        self.outcome_handler.handle_success(job)

    def _fail(self, job: ConversionJob, failure: FailureKind, message: Optional[str] = None):
        job.state = JobState.FAILED
        job.failure = failure
        if message:
            job.error_message = message
        record = self.outcome_handler.handle_failure(job)
        self.logger.error(
            f"Conversion failed: {job.item.relative_path} "
            f"(reason={failure.value}, exit code={job.exit_code})"
        )
        self.event_bus.publish(JobFailed(job=job, error_message=record.message))
