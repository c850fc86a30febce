"""
Transcript segmentation for Captionist.

Turns a plain transcript into timed captions using a reading-speed model:
words are split into evenly sized chunks (one per `max_segment_duration`
of runtime) and each chunk gets a window long enough to read it, clamped
to `[min_segment_duration, max_segment_duration]` and to the total
duration.

This is a heuristic, not audio alignment. Output is deterministic for a
given transcript, duration and config.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List

from captionist.domain.captions import GENERATED_CONFIDENCE, CaptionSegment
from captionist.exceptions import ConfigurationError
from captionist.utils.logging import get_logger
from captionist.utils.text import normalize_text, split_words

log = get_logger(__name__)

OVERFLOW_POLICIES = {"drop", "redistribute"}

LIVE_FLUSH_ENTRIES = 3
LIVE_FLUSH_SPAN_MS = 3000
LIVE_DEFAULT_CONFIDENCE = 0.8


@dataclass(frozen=True)
class SegmentationConfig:
    max_segment_duration: float = 5.0
    min_segment_duration: float = 1.0
    words_per_minute: float = 150.0
    overflow: str = "drop"

    def validate(self) -> None:
        if self.max_segment_duration <= 0:
            raise ConfigurationError("max_segment_duration must be positive.")
        if self.min_segment_duration < 0:
            raise ConfigurationError("min_segment_duration must not be negative.")
        if self.words_per_minute <= 0:
            raise ConfigurationError("words_per_minute must be positive.")
        if self.overflow not in OVERFLOW_POLICIES:
            raise ConfigurationError(
                f"Invalid overflow policy '{self.overflow}'; use drop or redistribute."
            )


def reading_time(word_count: int, config: SegmentationConfig) -> float:
    seconds = max(word_count / config.words_per_minute * 60.0, config.min_segment_duration)
    return min(seconds, config.max_segment_duration)


def split_into_chunks(words: list[str], total_duration: float, config: SegmentationConfig) -> list[list[str]]:
    if not words:
        return []
    target_segments = max(1, math.ceil(total_duration / config.max_segment_duration))
    words_per_segment = max(1, math.ceil(len(words) / target_segments))
    log.debug(
        "Segmentation params: words=%d target_segments=%d words_per_segment=%d",
        len(words),
        target_segments,
        words_per_segment,
    )
    return [words[i : i + words_per_segment] for i in range(0, len(words), words_per_segment)]


def generate_captions(
    transcript: str,
    total_duration: float,
    config: SegmentationConfig | None = None,
) -> list[CaptionSegment]:
    """
    Split `transcript` into captions spanning at most `total_duration` seconds.

    Chunks whose window would start at or after `total_duration` are
    dropped (or, with `overflow="redistribute"`, every window is shrunk
    proportionally so all chunks fit).
    """
    config = config or SegmentationConfig()
    config.validate()

    if not transcript.strip():
        log.info("Empty transcript; no captions generated.")
        return []
    if total_duration <= 0:
        log.warning("Non-positive duration %.3f; no captions generated.", total_duration)
        return []

    chunks = split_into_chunks(split_words(transcript), total_duration, config)
    windows = [reading_time(len(chunk), config) for chunk in chunks]

    if config.overflow == "redistribute":
        needed = sum(windows)
        if needed > total_duration:
            scale = total_duration / needed
            windows = [w * scale for w in windows]

    captions: list[CaptionSegment] = []
    cursor = 0.0
    for idx, (chunk, window) in enumerate(zip(chunks, windows)):
        end = min(cursor + window, total_duration)
        if end > cursor:
            captions.append(
                CaptionSegment(
                    id=f"caption-{idx}",
                    text=" ".join(chunk),
                    start_time=cursor,
                    end_time=end,
                    confidence=GENERATED_CONFIDENCE,
                )
            )
        cursor = end

    dropped = len(chunks) - len(captions)
    if dropped:
        log.warning(
            "Dropped %d of %d caption chunks: duration %.2fs exhausted.",
            dropped,
            len(chunks),
            total_duration,
        )
    log.info("Generated %d captions over %.2fs", len(captions), total_duration)
    return captions


@dataclass(frozen=True)
class TranscriptEntry:
    text: str
    timestamp_ms: float
    confidence: float = LIVE_DEFAULT_CONFIDENCE


@dataclass
class TranscriptBuffer:
    """Accumulates live recognition results into captions."""

    min_segment_duration: float = 1.0
    entries: List[TranscriptEntry] = field(default_factory=list)

    def add(
        self,
        text: str,
        timestamp_ms: float,
        confidence: float = LIVE_DEFAULT_CONFIDENCE,
    ) -> CaptionSegment | None:
        """Buffer one result; return a caption once enough has accumulated."""
        self.entries.append(TranscriptEntry(text=text, timestamp_ms=timestamp_ms, confidence=confidence))
        first, last = self.entries[0], self.entries[-1]
        if len(self.entries) < LIVE_FLUSH_ENTRIES and last.timestamp_ms - first.timestamp_ms <= LIVE_FLUSH_SPAN_MS:
            return None
        return self.flush()

    def flush(self) -> CaptionSegment | None:
        if not self.entries:
            return None
        entries, self.entries = self.entries, []
        first, last = entries[0], entries[-1]
        start = max(0.0, first.timestamp_ms / 1000.0)
        end = last.timestamp_ms / 1000.0
        if end <= start:
            end = start + max(self.min_segment_duration, 0.001)
        return CaptionSegment(
            id=f"caption-live-{int(last.timestamp_ms)}",
            text=normalize_text(" ".join(e.text for e in entries)),
            start_time=start,
            end_time=end,
            confidence=sum(e.confidence for e in entries) / len(entries),
        )

    def clear(self) -> None:
        self.entries = []
