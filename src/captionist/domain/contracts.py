from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from captionist.domain.captions import CaptionSegment, CaptionStyle
    from captionist.domain.jobs import AccessorResponse


class StatusAccessor(Protocol):
    def get_export_status(self, job_id: str) -> AccessorResponse: ...


class SubmissionAccessor(Protocol):
    def submit_export(
        self,
        video_id: str,
        captions: Sequence[CaptionSegment],
        style: CaptionStyle,
        output_options: dict[str, Any],
    ) -> AccessorResponse: ...


class ArtifactAccessor(Protocol):
    def download_export(self, job_id: str) -> bytes: ...


class HealthAccessor(Protocol):
    def health_check(self) -> AccessorResponse: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...
