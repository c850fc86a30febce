from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from captionist.exceptions import ValidationError

GENERATED_CONFIDENCE = 0.9
IMPORTED_CONFIDENCE = 1.0

POSITIONS = ("top", "center", "bottom")
CAPTION_TYPES = ("reel", "classic", "bounce", "slide")


@dataclass(frozen=True)
class CaptionSegment:
    id: str
    text: str
    start_time: float
    end_time: float
    confidence: float = GENERATED_CONFIDENCE

    def __post_init__(self) -> None:
        if self.start_time < 0:
            raise ValidationError(
                f"Caption '{self.id}' starts before zero ({self.start_time})."
            )
        if self.end_time <= self.start_time:
            raise ValidationError(
                f"Caption '{self.id}' must end after it starts "
                f"({self.start_time} -> {self.end_time})."
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError(
                f"Caption '{self.id}' confidence out of range ({self.confidence})."
            )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def contains(self, seconds: float) -> bool:
        return self.start_time <= seconds <= self.end_time

    def with_timing(self, start_time: float, end_time: float) -> "CaptionSegment":
        return replace(self, start_time=start_time, end_time=end_time)

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class SRTCue:
    index: int
    start_time: float
    end_time: float
    text: str


@dataclass(frozen=True)
class CaptionStyle:
    """
    Flat caption styling record, as produced by the styling UI.

    Colors are `#RRGGBB`/`#RGB`; `rgb()`, `rgba()` and `transparent` are also
    accepted and keep their alpha in ASS output.
    """

    font_family: str = "Arial"
    font_size: int = 24
    font_weight: int | str = 400
    color: str = "#FFFFFF"
    position: str = "bottom"
    background_color: str = "#000000"
    padding: int = 8
    border_radius: int = 4
    type: str = "reel"

    @property
    def is_bold(self) -> bool:
        if isinstance(self.font_weight, str):
            weight = self.font_weight.strip().lower()
            if weight in {"bold", "bolder"}:
                return True
            return weight.isdigit() and int(weight) >= 700
        return self.font_weight >= 700

    def to_payload(self) -> dict:
        return {
            "type": self.type,
            "position": self.position,
            "fontSize": self.font_size,
            "fontFamily": self.font_family,
            "fontWeight": self.font_weight,
            "color": self.color,
            "backgroundColor": self.background_color,
            "padding": self.padding,
            "borderRadius": self.border_radius,
        }


def retime_caption(
    captions: Iterable[CaptionSegment],
    caption_id: str,
    start_time: float,
    end_time: float,
) -> list[CaptionSegment]:
    """Return a new list with one caption's start/end rewritten."""
    updated: list[CaptionSegment] = []
    found = False
    for caption in captions:
        if caption.id == caption_id:
            caption = caption.with_timing(start_time, end_time)
            found = True
        updated.append(caption)
    if not found:
        raise ValidationError(f"Unknown caption id '{caption_id}'.")
    return updated


def timeline_end(captions: Iterable[CaptionSegment]) -> float:
    return max((c.end_time for c in captions), default=0.0)
