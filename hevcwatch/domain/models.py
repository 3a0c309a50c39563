from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class ContainerKind(str, Enum):
    MATROSKA = "MATROSKA"
    MP4 = "MP4"

class PixelFormatOption(str, Enum):
    NONE = "NONE"
    TEN_BIT = "TEN_BIT"
    TWELVE_BIT = "TWELVE_BIT"

class JobState(str, Enum):
    STARTING = "STARTING"
    PROBING = "PROBING"
    ENCODING = "ENCODING"
    FINALIZING = "FINALIZING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

class FailureKind(str, Enum):
    DIRECTORY_CREATE = "DIRECTORY_CREATE"
    PROGRESS_SINK = "PROGRESS_SINK"
    ENCODE = "ENCODE"

class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_path: Path
    relative_path: Path
    extension: str

class ConversionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_path: Path
    container_kind: ContainerKind
    stream_map_args: List[str] = Field(default_factory=list)
    subtitle_copy_args: List[str] = Field(default_factory=list)

class ProbeResult(BaseModel):
    bitrate: int
    duration: int
    pixel_format: PixelFormatOption = PixelFormatOption.NONE

class EncodeParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    quality_level: int
    pixel_format: PixelFormatOption = PixelFormatOption.NONE

class ConversionJob(BaseModel):
    item: WorkItem
    plan: ConversionPlan
    state: JobState = JobState.STARTING
    parameters: Optional[EncodeParameters] = None
    duration_seconds: Optional[int] = None
    exit_code: Optional[int] = None
    failure: Optional[FailureKind] = None
    error_message: Optional[str] = None
    diagnostics: str = ""
    elapsed_seconds: Optional[float] = None

    @property
    def finished(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.FAILED)

class ScanStats(BaseModel):
    found: int = 0
    skipped_log: int = 0
    already_converted: int = 0
    duplicate_output: int = 0
    unreadable: int = 0
    queued: int = 0

class ErrorRecord(BaseModel):
    """One failed conversion, as written to the per-directory error.log."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    relative_path: Path
    source_path: Path
    output_path: Path
    exit_code: Optional[int] = None
    message: str = "Conversion failed."
    diagnostics: str = ""

    def render(self) -> str:
        separator = "-" * 52
        lines = [
            separator,
            f"Date: {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
            f"File: {self.relative_path}",
            f"Source path: {self.source_path}",
            f"Output path: {self.output_path}",
            f"Exit code: {self.exit_code if self.exit_code is not None else 'n/a'}",
            f"Message: {self.message}",
            "---- FFMPEG ERROR DETAILS ----",
        ]
        if self.diagnostics:
            lines.append(self.diagnostics.rstrip("\n"))
        lines.append(separator)
        return "\n".join(lines) + "\n"

    def summary(self) -> str:
        return (
            f"{self.timestamp.strftime('%Y-%m-%d %H:%M:%S')} ERROR: conversion failed for "
            f"{self.relative_path} (exit code {self.exit_code if self.exit_code is not None else 'n/a'}): "
            f"{self.message}\n"
        )
