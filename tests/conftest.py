from __future__ import annotations

import inspect
from typing import Any, Callable

import pytest
import typer.testing

from captionist.domain.jobs import AccessorResponse


def _patch_clirunner() -> None:
    if "mix_stderr" in inspect.signature(typer.testing.CliRunner).parameters:
        return

    class PatchedCliRunner(typer.testing.CliRunner):
        def __init__(self, *args, **kwargs):  # noqa: ANN002, ANN003
            kwargs.pop("mix_stderr", None)
            super().__init__(*args, **kwargs)

    typer.testing.CliRunner = PatchedCliRunner


_patch_clirunner()


class ManualHandle:
    def __init__(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.delay_s = delay_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Records timers instead of starting threads; tests fire them by hand."""

    def __init__(self) -> None:
        self.handles: list[ManualHandle] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(delay_s, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    @property
    def delays(self) -> list[float]:
        return [h.delay_s for h in self.handles]

    def fire_next(self) -> ManualHandle:
        handle = self.pending[0]
        handle.cancelled = True
        handle.callback()
        return handle


def ok(data: Any) -> AccessorResponse:
    return AccessorResponse(success=True, data=data)


def status_payload(status: str, progress: int = 0, **extra: Any) -> AccessorResponse:
    return ok({"id": "job-1", "status": status, "progress": progress, **extra})


class FakeBackend:
    """
    Scripted export backend implementing every accessor contract.

    `statuses` is consumed in order; an Exception entry is raised instead
    of returned. The last entry repeats once the script runs out.
    """

    def __init__(
        self,
        statuses: list[Any] | None = None,
        *,
        submit_response: Any = None,
        artifact: bytes = b"video-bytes",
        health: Any = None,
    ) -> None:
        self.statuses = list(statuses or [])
        self.submit_response = submit_response if submit_response is not None else ok({"jobId": "job-1"})
        self.artifact = artifact
        self.health = health if health is not None else ok({"status": "ok"})
        self.status_calls: list[str] = []
        self.submissions: list[dict[str, Any]] = []
        self.downloads: list[str] = []

    def _next_status(self) -> Any:
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def get_export_status(self, job_id: str) -> AccessorResponse:
        self.status_calls.append(job_id)
        item = self._next_status()
        if isinstance(item, Exception):
            raise item
        return item

    def submit_export(self, video_id, captions, style, output_options):  # noqa: ANN001
        self.submissions.append(
            {
                "video_id": video_id,
                "captions": list(captions),
                "style": style,
                "output_options": output_options,
            }
        )
        if isinstance(self.submit_response, Exception):
            raise self.submit_response
        return self.submit_response

    def download_export(self, job_id: str) -> bytes:
        self.downloads.append(job_id)
        return self.artifact

    def health_check(self) -> AccessorResponse:
        if isinstance(self.health, Exception):
            raise self.health
        return self.health


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture
def responses():
    """Response builders: `responses.ok(data)` and `responses.status(state, progress, **extra)`."""

    class _Responses:
        ok = staticmethod(ok)
        status = staticmethod(status_payload)

    return _Responses
