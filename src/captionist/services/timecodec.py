"""
Time formatting for subtitle files.

SRT uses millisecond precision with a comma separator (`H:MM:SS,mmm`);
ASS uses centisecond precision with a dot (`H:MM:SS.cc`). Renderers are
strict about both, so the two stay separate functions.

Fractions are truncated, never rounded.
"""

from __future__ import annotations

import math
import re

from captionist.exceptions import FormatError

# Binary floats store 3661.999 as 3661.99899999...; products are rounded to
# this many places before truncation so such values keep their last unit.
_PRODUCT_DIGITS = 9

SRT_TIME_PATTERN = r"\d+:\d{2}:\d{2},\d{3}"
_SRT_TIME_RE = re.compile(rf"^\s*(\d+):(\d{{2}}):(\d{{2}}),(\d{{3}})\s*$")


def _split(seconds: float, units_per_second: int) -> tuple[int, int, int, int]:
    if seconds < 0 or not math.isfinite(seconds):
        raise FormatError(f"Cannot format negative or non-finite time: {seconds!r}")
    total_units = math.floor(round(seconds * units_per_second, _PRODUCT_DIGITS))
    fraction = total_units % units_per_second
    total_s = total_units // units_per_second
    return total_s // 3600, (total_s % 3600) // 60, total_s % 60, fraction


def seconds_to_srt(seconds: float) -> str:
    # seconds -> "H:MM:SS,mmm"
    hh, mm, ss, ms = _split(seconds, 1000)
    return f"{hh}:{mm:02d}:{ss:02d},{ms:03d}"


def seconds_to_ass(seconds: float) -> str:
    # seconds -> "H:MM:SS.cc"
    hh, mm, ss, cs = _split(seconds, 100)
    return f"{hh}:{mm:02d}:{ss:02d}.{cs:02d}"


def srt_to_seconds(value: str) -> float:
    match = _SRT_TIME_RE.match(value)
    if not match:
        raise FormatError(f"Invalid SRT timestamp: {value!r}")
    hh, mm, ss, ms = (int(part) for part in match.groups())
    if mm > 59 or ss > 59:
        raise FormatError(f"Invalid SRT timestamp: {value!r}")
    return hh * 3600 + mm * 60 + ss + ms / 1000.0
