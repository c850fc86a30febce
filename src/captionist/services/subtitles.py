"""
Subtitle codec for Captionist.

Reads SRT into cues, writes caption lists back out as SRT, and builds the
styled ASS document the export backend burns into the video.

Responsibilities:
- Tolerant SRT decoding (broken blocks are skipped, never fatal)
- SRT encoding with sequential re-indexing
- ASS header/style/event generation, color and alignment mapping

Does NOT:
- Sort, merge or de-overlap captions (callers own ordering)
- Render or rasterize anything
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Sequence

from captionist.domain.captions import (
    IMPORTED_CONFIDENCE,
    CaptionSegment,
    CaptionStyle,
    SRTCue,
)
from captionist.exceptions import FormatError, ValidationError
from captionist.services.timecodec import (
    SRT_TIME_PATTERN,
    seconds_to_ass,
    seconds_to_srt,
    srt_to_seconds,
)
from captionist.utils.logging import get_logger
from captionist.utils.text import normalize_newlines

log = get_logger(__name__)

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
_TIMING_RE = re.compile(rf"({SRT_TIME_PATTERN})\s*-->\s*({SRT_TIME_PATTERN})")
_HEX_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{6}|[0-9A-Fa-f]{3})$")
_RGBA_COLOR_RE = re.compile(
    r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*(\d*\.?\d+)\s*)?\)$", re.IGNORECASE
)

DEFAULT_PLAY_RES_X = 1080
DEFAULT_PLAY_RES_Y = 1920
ASS_SECONDARY_COLOUR = "&H000000FF&"
ASS_MARGIN = 20

ASS_STYLE_FORMAT = (
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, "
    "OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, "
    "ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
    "Alignment, MarginL, MarginR, MarginV, Encoding"
)
ASS_EVENT_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


# ----------------------------------------------------------------------
# SRT decode
# ----------------------------------------------------------------------
def _parse_srt_block(block: str) -> SRTCue:
    lines = block.strip().split("\n")
    if len(lines) < 3:
        raise FormatError(f"SRT block has {len(lines)} line(s), expected at least 3")

    raw_index = lines[0].strip()
    try:
        index = int(raw_index)
    except ValueError:
        raise FormatError(f"Invalid subtitle index: {raw_index!r}") from None

    match = _TIMING_RE.search(lines[1])
    if not match:
        raise FormatError(f"Invalid time range: {lines[1].strip()!r}")

    return SRTCue(
        index=index,
        start_time=srt_to_seconds(match.group(1)),
        end_time=srt_to_seconds(match.group(2)),
        text="\n".join(lines[2:]).strip(),
    )


def parse_srt(content: str) -> list[SRTCue]:
    """
    Decode SRT text into cues, in file order.

    Malformed blocks are logged and skipped; this never raises for
    structurally broken input, it just yields fewer cues.
    """
    text = normalize_newlines(content).lstrip("\ufeff").strip()
    if not text:
        return []

    cues: list[SRTCue] = []
    skipped = 0
    for block in _BLOCK_SPLIT_RE.split(text):
        if not block.strip():
            continue
        try:
            cues.append(_parse_srt_block(block))
        except FormatError as exc:
            skipped += 1
            log.warning("Skipping SRT block: %s", exc.message)
    log.info("Parsed %d subtitle entries (%d skipped)", len(cues), skipped)
    return cues


def read_srt(path: Path) -> list[SRTCue]:
    return parse_srt(Path(path).read_text(encoding="utf-8-sig", errors="replace"))


def cues_to_segments(cues: Iterable[SRTCue]) -> list[CaptionSegment]:
    """Import decoded cues as ground-truth captions (confidence 1.0)."""
    segments: list[CaptionSegment] = []
    for position, cue in enumerate(cues):
        try:
            segments.append(
                CaptionSegment(
                    id=f"srt-caption-{cue.index}-{position}",
                    text=cue.text,
                    start_time=cue.start_time,
                    end_time=cue.end_time,
                    confidence=IMPORTED_CONFIDENCE,
                )
            )
        except ValidationError as exc:
            log.warning("Dropping SRT cue %d: %s", cue.index, exc.message)
    return segments


# ----------------------------------------------------------------------
# SRT encode
# ----------------------------------------------------------------------
def encode_srt(captions: Sequence[CaptionSegment]) -> str:
    blocks = [
        f"{idx}\n{seconds_to_srt(c.start_time)} --> {seconds_to_srt(c.end_time)}\n{c.text}\n"
        for idx, c in enumerate(captions, start=1)
    ]
    return "\n".join(blocks)


def write_srt(captions: Sequence[CaptionSegment], out_path: Path) -> Path:
    out_path = Path(out_path)
    out_path.write_bytes(encode_srt(captions).encode("utf-8"))
    log.info("Wrote %d captions -> %s", len(captions), out_path)
    return out_path


# ----------------------------------------------------------------------
# ASS encode
# ----------------------------------------------------------------------
def hex_to_ass_color(hex_color: str) -> str:
    """Convert #RRGGBB to ASS &HBBGGRR& (byte order reversed)."""
    match = _HEX_COLOR_RE.match(hex_color.strip())
    if not match:
        raise FormatError(f"Invalid hex color: {hex_color!r}")
    value = match.group(1).upper()
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    rr, gg, bb = value[0:2], value[2:4], value[4:6]
    return f"&H{bb}{gg}{rr}&"


def css_to_ass_color(color: str) -> str:
    """
    Convert a CSS color to ASS.

    Hex colors map as in hex_to_ass_color. `rgb()`/`rgba()` and
    `transparent` map to &HAABBGGRR& with ASS alpha (00 opaque, FF clear).
    """
    value = color.strip()
    if value.lower() == "transparent":
        return "&HFF000000&"
    match = _RGBA_COLOR_RE.match(value)
    if not match:
        return hex_to_ass_color(value)
    channels = [int(match.group(i)) for i in (1, 2, 3)]
    if any(c > 255 for c in channels):
        raise FormatError(f"Invalid rgba color: {color!r}")
    opacity = 1.0 if match.group(4) is None else float(match.group(4))
    if opacity > 1.0:
        raise FormatError(f"Invalid rgba color: {color!r}")
    alpha = round((1.0 - opacity) * 255)
    rr, gg, bb = channels
    return f"&H{alpha:02X}{bb:02X}{gg:02X}{rr:02X}&"


def position_to_alignment(position: str | None) -> int:
    # Numpad layout: 8 top-center, 5 middle-center, 2 bottom-center.
    if position == "top":
        return 8
    if position == "center":
        return 5
    return 2


def _escape_ass_text(text: str) -> str:
    # Newlines first: the \N token must not see the comma escape.
    return normalize_newlines(text).replace("\n", r"\N").replace(",", r"\,")


def _style_line(style: CaptionStyle) -> str:
    primary = css_to_ass_color(style.color)
    back = css_to_ass_color(style.background_color)
    bold = -1 if style.is_bold else 0
    alignment = position_to_alignment(style.position)
    return (
        f"Style: Default,{style.font_family},{style.font_size},"
        f"{primary},{ASS_SECONDARY_COLOUR},{back},{back},"
        f"{bold},0,0,0,100,100,0,0,1,0,0,{alignment},"
        f"{ASS_MARGIN},{ASS_MARGIN},{ASS_MARGIN},0"
    )


def encode_ass(
    captions: Sequence[CaptionSegment],
    style: CaptionStyle,
    *,
    play_res_x: int = DEFAULT_PLAY_RES_X,
    play_res_y: int = DEFAULT_PLAY_RES_Y,
) -> str:
    lines = [
        "[Script Info]",
        "ScriptType: v4.00+",
        "Collisions: Normal",
        "WrapStyle: 2",
        f"PlayResX: {play_res_x}",
        f"PlayResY: {play_res_y}",
        "",
        "[V4+ Styles]",
        ASS_STYLE_FORMAT,
        _style_line(style),
        "",
        "[Events]",
        ASS_EVENT_FORMAT,
    ]
    for caption in captions:
        start_ass = seconds_to_ass(caption.start_time)
        end_ass = seconds_to_ass(caption.end_time)
        lines.append(
            f"Dialogue: 0,{start_ass},{end_ass},Default,,0,0,0,,{_escape_ass_text(caption.text)}"
        )
    return "\n".join(lines) + "\n"


def write_ass(
    captions: Sequence[CaptionSegment],
    style: CaptionStyle,
    ass_path: Path,
    *,
    play_res_x: int = DEFAULT_PLAY_RES_X,
    play_res_y: int = DEFAULT_PLAY_RES_Y,
) -> Path:
    ass_path = Path(ass_path)
    content = encode_ass(captions, style, play_res_x=play_res_x, play_res_y=play_res_y)
    ass_path.write_bytes(content.encode("utf-8"))
    log.info("Wrote ASS subtitles (%d events) -> %s", len(captions), ass_path)
    return ass_path
