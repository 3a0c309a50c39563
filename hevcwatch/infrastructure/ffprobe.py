import logging
import subprocess
from pathlib import Path
from typing import List, Optional
from hevcwatch.config.rate_control import DEFAULT_BITRATE_BPS, parse_bitrate
from hevcwatch.domain.models import PixelFormatOption, ProbeResult

DEFAULT_DURATION_SECONDS = 1

TEN_BIT_FORMATS = {"yuv420p10le", "p010le"}
TWELVE_BIT_FORMATS = {"yuv420p12le", "p012le"}


def pixel_format_option(pix_fmt: Optional[str]) -> PixelFormatOption:
    """Maps an ffprobe pix_fmt name to the encoder pixel format branch."""
    name = (pix_fmt or "").strip()
    if name in TEN_BIT_FORMATS:
        return PixelFormatOption.TEN_BIT
    if name in TWELVE_BIT_FORMATS:
        return PixelFormatOption.TWELVE_BIT
    return PixelFormatOption.NONE


def parse_duration(value: Optional[str]) -> int:
    """Whole seconds from ffprobe's format=duration, never below 1."""
    text = (value or "").strip()
    whole = text.split(".", 1)[0]
    if not whole.isdigit() or not whole.isascii():
        return DEFAULT_DURATION_SECONDS
    seconds = int(whole)
    return seconds if seconds > 0 else DEFAULT_DURATION_SECONDS


class FFprobeAdapter:
    """Wrapper around ffprobe answering the three questions the encoder needs.

    Each query is independent and falls back to a safe default when ffprobe
    fails or prints something unexpected; nothing here raises.
    """

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def _query(self, file_path: Path, selector: List[str]) -> Optional[str]:
        cmd = [
            "ffprobe",
            "-v", "error",
            *selector,
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(file_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.debug(f"ffprobe could not run for {file_path.name}: {e}")
            return None
        if result.returncode != 0:
            self.logger.debug(f"ffprobe failed for {file_path.name}: {result.stderr.strip()}")
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else ""

    def get_bitrate(self, file_path: Path) -> int:
        raw = self._query(file_path, ["-select_streams", "v:0", "-show_entries", "stream=bit_rate"])
        if raw is None or not raw.isdigit():
            self.logger.debug(f"Bitrate unavailable for {file_path.name} ({raw!r}), using {DEFAULT_BITRATE_BPS}")
        return parse_bitrate(raw)

    def get_duration(self, file_path: Path) -> int:
        raw = self._query(file_path, ["-show_entries", "format=duration"])
        return parse_duration(raw)

    def get_pixel_format(self, file_path: Path) -> PixelFormatOption:
        raw = self._query(file_path, ["-select_streams", "v:0", "-show_entries", "stream=pix_fmt"])
        return pixel_format_option(raw)

    def probe(self, file_path: Path) -> ProbeResult:
        return ProbeResult(
            bitrate=self.get_bitrate(file_path),
            duration=self.get_duration(file_path),
            pixel_format=self.get_pixel_format(file_path),
        )
