"""
Export job progress polling for Captionist.

A small state machine around a remote status accessor:

    IDLE -> POLLING -> COMPLETED | FAILED | EXHAUSTED

Responsibilities:
- Emit an optimistic `pending` status before the first round trip
- Adapt the polling interval to progress and payload size
- Retry transient failures up to RETRY_LIMIT, then give up (EXHAUSTED)
- Stop immediately on a server-reported failure (FAILED)
- Discard late responses from a superseded or stopped loop

Does NOT:
- Abort in-flight requests (cancellation is cooperative)
- Resubmit jobs or impose a wall-clock limit (the orchestrator does)
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from captionist.domain.contracts import Scheduler, StatusAccessor, TimerHandle
from captionist.domain.jobs import JobState, JobStatus, PollerPhase, PollerState
from captionist.exceptions import (
    CaptionistError,
    RemoteJobError,
    TransportError,
    ValidationError,
)
from captionist.utils.logging import get_logger

log = get_logger(__name__)

RETRY_LIMIT = 3
RETRY_DELAY_MS = 2000
MIN_INTERVAL_MS = 5000
LARGE_FILE_BYTES = 100 * 1024 * 1024

POLLING_INTERVALS_MS = {
    "fast": 5000,
    "normal": 10000,
    "slow": 15000,
    "final": 20000,
}

StatusListener = Callable[[JobStatus], None]
ErrorListener = Callable[[CaptionistError], None]


def polling_tier(progress: float, file_size: int) -> str:
    if progress < 5:
        return "fast"
    if progress < 50:
        return "normal"
    if file_size > LARGE_FILE_BYTES:
        return "slow"
    return "final"


def next_delay_ms(progress: float, file_size: int) -> int:
    return max(POLLING_INTERVALS_MS[polling_tier(progress, file_size)], MIN_INTERVAL_MS)


class ThreadingScheduler:
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


class JobProgressPoller:
    def __init__(
        self,
        accessor: StatusAccessor,
        *,
        scheduler: Scheduler | None = None,
        on_status: Optional[StatusListener] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> None:
        self._accessor = accessor
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.RLock()
        self._done = threading.Event()
        self._state = PollerState()
        self._generation = 0
        self._timer: TimerHandle | None = None
        self._error: CaptionistError | None = None
        self._status_listeners: list[StatusListener] = []
        self._error_listeners: list[ErrorListener] = []
        self.subscribe(on_status=on_status, on_error=on_error)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(
        self,
        *,
        on_status: Optional[StatusListener] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> None:
        if on_status is not None:
            self._status_listeners.append(on_status)
        if on_error is not None:
            self._error_listeners.append(on_error)

    @property
    def state(self) -> PollerState:
        with self._lock:
            return self._state.snapshot()

    @property
    def phase(self) -> PollerPhase:
        return self._state.phase

    @property
    def last_status(self) -> JobStatus | None:
        return self._state.last_status

    @property
    def error(self) -> CaptionistError | None:
        return self._error

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_polling(self) -> bool:
        return self._state.is_polling

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def start(self, job_id: str, file_size_hint: int = 0) -> int:
        """Start polling `job_id`, superseding any running loop. Returns the loop generation."""
        if not job_id:
            raise ValidationError("Cannot poll without a job id.")
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._error = None
            self._done.clear()
            initial = JobStatus.pending(job_id)
            self._state = PollerState(
                job_id=job_id,
                last_status=initial,
                is_polling=True,
                retry_count=0,
                file_size_hint=max(0, int(file_size_hint)),
                phase=PollerPhase.POLLING,
            )
        log.info("Polling export job %s (file size hint %d bytes)", job_id, file_size_hint)
        self._emit_status(initial)
        self._poll(generation)
        return generation

    def stop(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            if self._state.is_polling:
                log.info("Stopped polling export job %s", self._state.job_id)
                self._state.is_polling = False
                self._state.phase = PollerPhase.IDLE
        self._done.set()

    def reset(self) -> None:
        self.stop()
        with self._lock:
            self._state = PollerState()
            self._error = None
            self._done.clear()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop reaches a terminal phase or is stopped."""
        return self._done.wait(timeout)

    def check_progress(self, job_id: str | None = None) -> JobStatus:
        """Fetch the current status once, outside the polling loop."""
        job_id = job_id or self._state.job_id
        if not job_id:
            raise ValidationError("No job to check.")
        return self._fetch(job_id)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._state.is_polling

    def _owns(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self, generation: int, delay_ms: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            log.debug("Next poll in %dms", delay_ms)
            self._timer = self._scheduler.call_later(delay_ms / 1000.0, lambda: self._poll(generation))

    def _fetch(self, job_id: str) -> JobStatus:
        response = self._accessor.get_export_status(job_id)
        if not response.success:
            raise TransportError(response.error or "Failed to get export status")
        if not response.data:
            raise TransportError("No progress data received")
        return JobStatus.from_payload(response.data, fallback_job_id=job_id)

    def _poll(self, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return
            self._timer = None
            job_id = self._state.job_id

        try:
            status = self._fetch(job_id)
        except (TransportError, ValueError, TypeError) as exc:
            self._handle_failure(generation, exc)
            return
        self._handle_status(generation, status)

    def _handle_status(self, generation: int, status: JobStatus) -> None:
        error: CaptionistError | None = None
        delay_ms: int | None = None
        with self._lock:
            if not self._is_current(generation):
                log.debug("Discarding late status for job %s", status.job_id)
                return
            state = self._state
            state.retry_count = 0
            state.last_status = status
            if status.status is JobState.COMPLETED:
                state.phase = PollerPhase.COMPLETED
                state.is_polling = False
            elif status.status is JobState.FAILED:
                error = RemoteJobError(status.error or "Export failed")
                self._error = error
                state.phase = PollerPhase.FAILED
                state.is_polling = False
                state.error = error.message
            else:
                delay_ms = next_delay_ms(status.progress, state.file_size_hint)
            if delay_ms is None:
                self._done.set()

        log.info("Export job %s: %s (%d%%)", status.job_id, status.status.value, status.progress)
        if self._owns(generation):
            self._emit_status(status)
        if error is not None:
            log.error("Export job %s failed: %s", status.job_id, error.message)
            if self._owns(generation):
                self._emit_error(error)
        if delay_ms is not None:
            self._schedule(generation, delay_ms)

    def _handle_failure(self, generation: int, exc: Exception) -> None:
        error: CaptionistError | None = None
        with self._lock:
            if not self._is_current(generation):
                log.debug("Discarding late failure: %s", exc)
                return
            state = self._state
            state.retry_count += 1
            attempts = state.retry_count
            if attempts >= RETRY_LIMIT:
                error = TransportError(
                    f"Failed to check progress after {RETRY_LIMIT} attempts: {exc}"
                )
                self._error = error
                state.phase = PollerPhase.EXHAUSTED
                state.is_polling = False
                state.error = error.message
                self._done.set()

        if error is not None:
            log.error("%s", error.message)
            if self._owns(generation):
                self._emit_error(error)
            return
        log.warning("Progress check failed (attempt %d/%d): %s", attempts, RETRY_LIMIT, exc)
        self._schedule(generation, RETRY_DELAY_MS)

    def _emit_status(self, status: JobStatus) -> None:
        for listener in list(self._status_listeners):
            listener(status)

    def _emit_error(self, error: CaptionistError) -> None:
        for listener in list(self._error_listeners):
            listener(error)
