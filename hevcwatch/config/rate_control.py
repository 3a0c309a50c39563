"""Bitrate driven quality selection for the hevc_qsv encoder.

`-global_quality` is an ICQ level: lower means higher quality. Sources with
a high bitrate carry more detail, so they get a tighter target; starved
sources get a looser one instead of wasting bits on noise.
"""

from typing import Any, List, Tuple

DEFAULT_BITRATE_BPS = 1_000_000

# (exclusive upper bound in bps, global_quality)
QUALITY_STEPS: List[Tuple[int, int]] = [
    (800_000, 24),
    (2_000_000, 22),
    (5_000_000, 20),
]
HIGH_BITRATE_QUALITY = 18


def parse_bitrate(value: Any) -> int:
    """Returns value as a non-negative int bitrate, or the 1 Mbps default."""
    if isinstance(value, bool):
        return DEFAULT_BITRATE_BPS
    if isinstance(value, int):
        return value if value >= 0 else DEFAULT_BITRATE_BPS
    text = str(value).strip() if value is not None else ""
    if not text.isdigit() or not text.isascii():
        return DEFAULT_BITRATE_BPS
    return int(text)


def global_quality_for_bitrate(bitrate: Any) -> int:
    bps = parse_bitrate(bitrate)
    for upper_bound, quality in QUALITY_STEPS:
        if bps < upper_bound:
            return quality
    return HIGH_BITRATE_QUALITY


def format_bps_human(bps: int) -> str:
    if bps >= 1_000_000:
        return f"{bps / 1_000_000:.2f} Mbps"
    if bps >= 1_000:
        return f"{bps / 1_000:.0f} kbps"
    return f"{bps} bps"
