"""
Export orchestration for Captionist.

Submits captions + style to the remote export service, follows the job
with JobProgressPoller and resolves the finished artifact.

Flow:

1) Submit (returns a job id)
2) Poll until completed / failed / retries exhausted / ceiling reached
3) Resolve the download (server redirect URL, else fetch and save bytes)

Responsibilities:
- Map submission failures to UnavailableError / TransportError
- Estimate payload size so the poller can pick its interval tier
- Surface every terminal error to the caller, never resubmitting
- Record step timings in the workspace export manifest

Does NOT:
- Render video (the backend does)
- Retry submissions; callers re-invoke `submit` or fall back to
  `fallback_srt` when the service is unavailable
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Sequence

from captionist.config.settings import Settings
from captionist.domain.captions import CaptionSegment, CaptionStyle, timeline_end
from captionist.domain.contracts import (
    ArtifactAccessor,
    Scheduler,
    StatusAccessor,
    SubmissionAccessor,
)
from captionist.domain.jobs import JobStatus, PollerPhase
from captionist.domain.workspace import Workspace
from captionist.exceptions import (
    CaptionistError,
    ExportTimeoutError,
    RemoteJobError,
    TransportError,
    UnavailableError,
    ValidationError,
)
from captionist.services.poller import JobProgressPoller
from captionist.services.subtitles import write_srt
from captionist.utils.logging import get_logger
from captionist.utils.manifest import write_export_manifest
from captionist.utils.timing import StepTimer, utc_now

log = get_logger(__name__)

# Rough rendered size: ~1 MB per 10 seconds of video.
BYTES_PER_SECOND_ESTIMATE = 100_000
DEFAULT_MAX_POLLING_SECONDS = 1800.0


@dataclass(frozen=True)
class ExportResult:
    job_id: str
    status: JobStatus
    download_url: str | None = None
    path: Path | None = None

    @property
    def location(self) -> str:
        return self.download_url or str(self.path)


def estimate_payload_size(
    captions: Sequence[CaptionSegment],
    output_options: dict[str, Any] | None = None,
) -> int:
    options = output_options or {}
    explicit = options.get("fileSize") or options.get("file_size")
    duration = options.get("duration") or timeline_end(captions)
    try:
        if explicit:
            return int(explicit)
        return int(float(duration) * BYTES_PER_SECOND_ESTIMATE)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid output options: fileSize={explicit!r}, duration={duration!r}"
        ) from None


def describe_failure(exc: CaptionistError) -> str:
    """One user-facing sentence that tells waiting apart from fixing connectivity."""
    if isinstance(exc, ExportTimeoutError):
        return (
            f"Export timed out: {exc.message} The render may still finish; "
            "wait longer and check the job status again."
        )
    if isinstance(exc, UnavailableError):
        return (
            f"Export service unavailable: {exc.message} "
            "Check your connection and that the export backend is running."
        )
    if isinstance(exc, RemoteJobError):
        return f"Export failed on the server: {exc.message}"
    if isinstance(exc, TransportError):
        return (
            f"Export submission/transport failure: {exc.message} "
            "Check your connection and that the export backend is running."
        )
    return f"{exc.label()}: {exc.message}"


class ExportOrchestrator:
    def __init__(
        self,
        *,
        submission: SubmissionAccessor,
        status: StatusAccessor,
        artifacts: ArtifactAccessor,
        workspace: Workspace,
        poller: JobProgressPoller | None = None,
        scheduler: Scheduler | None = None,
        max_polling_seconds: float = DEFAULT_MAX_POLLING_SECONDS,
        settings: Settings | None = None,
    ) -> None:
        self._submission = submission
        self._artifacts = artifacts
        self.workspace = workspace
        self.poller = poller or JobProgressPoller(status, scheduler=scheduler)
        self.max_polling_seconds = max_polling_seconds
        self.settings = settings
        self.job_id: str | None = None

    def submit(
        self,
        video_id: str,
        captions: Sequence[CaptionSegment],
        style: CaptionStyle,
        output_options: dict[str, Any] | None = None,
    ) -> str:
        if not captions:
            raise ValidationError("No captions to export.")
        options = dict(output_options or {})
        size_hint = estimate_payload_size(captions, options)

        log.info("Submitting export for video %s (%d captions)", video_id, len(captions))
        try:
            response = self._submission.submit_export(video_id, captions, style, options)
        except UnavailableError:
            raise
        except TransportError as exc:
            raise UnavailableError(exc.message) from exc

        if not response.success:
            raise TransportError(response.error or "Export submission failed")
        data = response.data if isinstance(response.data, dict) else {}
        job_id = data.get("jobId") or data.get("job_id")
        if not job_id:
            raise TransportError("No job ID returned from export submission")

        self.job_id = str(job_id)
        self.poller.start(self.job_id, size_hint)
        return self.job_id

    def wait_for_completion(self, timeout: float | None = None) -> ExportResult:
        ceiling = self.max_polling_seconds if timeout is None else timeout
        if not self.poller.wait(ceiling):
            self.poller.stop()
            minutes = ceiling / 60.0
            raise ExportTimeoutError(
                f"Job {self.job_id} still rendering after {minutes:.1f} minutes of polling."
            )

        phase = self.poller.phase
        if phase is PollerPhase.COMPLETED:
            return self.resolve_download(self.poller.last_status)
        error = self.poller.error
        if phase in {PollerPhase.FAILED, PollerPhase.EXHAUSTED} and error is not None:
            raise error
        raise TransportError(f"Polling for job {self.job_id} stopped before it finished.")

    def resolve_download(self, status: JobStatus | None) -> ExportResult:
        if status is None:
            raise TransportError("No final status to resolve a download from.")
        if status.download_url:
            log.info("Export %s available at %s", status.job_id, status.download_url)
            return ExportResult(job_id=status.job_id, status=status, download_url=status.download_url)

        payload = self._artifacts.download_export(status.job_id)
        suffix = PurePosixPath(status.output_path).suffix if status.output_path else ""
        path = self.workspace.export_video(status.job_id, suffix or ".mp4")
        path.write_bytes(payload)
        log.info("Saved export %s (%d bytes) -> %s", status.job_id, len(payload), path)
        return ExportResult(job_id=status.job_id, status=status, path=path)

    def export(
        self,
        video_id: str,
        captions: Sequence[CaptionSegment],
        style: CaptionStyle,
        output_options: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ExportResult:
        """Submit, poll and download, writing the export manifest either way."""
        timer = StepTimer(clock=utc_now)
        started_at = timer.clock()
        result: ExportResult | None = None
        error: str | None = None
        try:
            with timer.step("submit"):
                self.submit(video_id, captions, style, output_options)
            with timer.step("poll"):
                result = self.wait_for_completion(timeout)
            return result
        except CaptionistError as exc:
            error = exc.message
            raise
        finally:
            try:
                write_export_manifest(
                    workspace=self.workspace,
                    captions=captions,
                    steps=timer.steps,
                    started_at=started_at,
                    finished_at=timer.clock(),
                    job_id=self.job_id,
                    status=self.poller.last_status,
                    result=result,
                    error=error,
                    settings_public=self.settings.to_public_dict() if self.settings else None,
                )
            except OSError as exc:
                log.warning("Could not write export manifest: %s", exc)

    def fallback_srt(self, captions: Sequence[CaptionSegment]) -> Path:
        """Save captions locally as SRT when the export service cannot be used."""
        path = write_srt(captions, self.workspace.captions_srt)
        log.warning("Export unavailable; captions saved locally -> %s", path)
        return path

    def cancel(self) -> None:
        self.poller.stop()
