from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from captionist.domain.captions import CaptionSegment
from captionist.utils.logging import get_logger
from captionist.utils.timing import MonotonicClock, monotonic_now

log = get_logger(__name__)

DEFAULT_HOLD_SECONDS = 0.5


class TimelineAction(str, Enum):
    SHOW = "show"
    UNCHANGED = "unchanged"
    HOLD = "hold"
    CLEAR = "clear"
    NONE = "none"


@dataclass(frozen=True)
class Resolution:
    action: TimelineAction
    caption: Optional[CaptionSegment] = None

    @property
    def visible(self) -> bool:
        return self.caption is not None


def find_active(captions: Sequence[CaptionSegment], current_time: float) -> CaptionSegment | None:
    # Linear scan; tolerates unsorted and overlapping input, first match wins.
    for caption in captions:
        if caption.contains(current_time):
            return caption
    return None


class CaptionTimeline:
    """
    Resolves the caption to display at a playback time.

    When playback falls into a gap, the last caption is held for
    `hold_seconds` of wall-clock time before it is cleared, so short gaps
    between adjacent cues do not flicker. A match during the hold cancels
    the pending clear.
    """

    def __init__(
        self,
        *,
        hold_seconds: float = DEFAULT_HOLD_SECONDS,
        clock: MonotonicClock = monotonic_now,
    ) -> None:
        self.hold_seconds = hold_seconds
        self._clock = clock
        self._active: CaptionSegment | None = None
        self._clear_at: float | None = None

    @property
    def active_id(self) -> str | None:
        return self._active.id if self._active else None

    @property
    def clear_pending(self) -> bool:
        return self._clear_at is not None

    def resolve(self, current_time: float, captions: Sequence[CaptionSegment]) -> Resolution:
        match = find_active(captions, current_time)

        if match is not None:
            self._clear_at = None
            if self._active is not None and match.id == self._active.id:
                self._active = match
                return Resolution(TimelineAction.UNCHANGED, match)
            log.debug("Caption %s active at %.3fs", match.id, current_time)
            self._active = match
            return Resolution(TimelineAction.SHOW, match)

        if self._active is None:
            return Resolution(TimelineAction.NONE)

        now = self._clock()
        if self._clear_at is None:
            self._clear_at = now + self.hold_seconds
            return Resolution(TimelineAction.HOLD, self._active)
        if now < self._clear_at:
            return Resolution(TimelineAction.HOLD, self._active)

        log.debug("Clearing caption %s after %.2fs gap", self._active.id, self.hold_seconds)
        self._active = None
        self._clear_at = None
        return Resolution(TimelineAction.CLEAR)

    def reset(self) -> None:
        self._active = None
        self._clear_at = None
