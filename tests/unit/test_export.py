from __future__ import annotations

import json
from pathlib import Path

import pytest

from captionist.domain.captions import CaptionSegment, CaptionStyle
from captionist.domain.jobs import AccessorResponse, PollerPhase
from captionist.domain.workspace import Workspace
from captionist.exceptions import (
    ExportTimeoutError,
    RemoteJobError,
    TransportError,
    UnavailableError,
    ValidationError,
)
from captionist.services.export import (
    ExportOrchestrator,
    describe_failure,
    estimate_payload_size,
)
from captionist.services.subtitles import read_srt

CAPTIONS = [
    CaptionSegment(id="c1", text="Hello", start_time=0.0, end_time=2.0),
    CaptionSegment(id="c2", text="World", start_time=2.0, end_time=12.0),
]


def _orchestrator(backend, scheduler, tmp_path: Path, **kwargs) -> ExportOrchestrator:  # noqa: ANN001, ANN003
    return ExportOrchestrator(
        submission=backend,
        status=backend,
        artifacts=backend,
        workspace=Workspace.create(str(tmp_path / ".captionist"), run_id="run1"),
        scheduler=scheduler,
        **kwargs,
    )


def test_estimate_payload_size() -> None:
    assert estimate_payload_size(CAPTIONS) == 1_200_000
    assert estimate_payload_size(CAPTIONS, {"duration": 30}) == 3_000_000
    assert estimate_payload_size(CAPTIONS, {"fileSize": 5}) == 5
    assert estimate_payload_size([], {}) == 0


def test_submit_starts_polling_with_size_hint(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("processing", 10)])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    job_id = orchestrator.submit("video-7", CAPTIONS, CaptionStyle())

    assert job_id == "job-1"
    assert backend.submissions[0]["video_id"] == "video-7"
    assert backend.submissions[0]["output_options"] == {}
    assert orchestrator.poller.state.file_size_hint == 1_200_000
    assert orchestrator.poller.phase is PollerPhase.POLLING


def test_submit_rejects_empty_captions(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    orchestrator = _orchestrator(make_backend([]), scheduler, tmp_path)
    with pytest.raises(ValidationError):
        orchestrator.submit("video-7", [], CaptionStyle())


def test_submit_rejects_bad_output_options_before_submitting(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    with pytest.raises(ValidationError, match="Invalid output options"):
        orchestrator.submit("video-7", CAPTIONS, CaptionStyle(), {"duration": "abc"})

    assert backend.submissions == []
    assert orchestrator.job_id is None
    assert not orchestrator.poller.is_polling


def test_submit_maps_transport_failure_to_unavailable(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([], submit_response=TransportError("connection refused"))
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    with pytest.raises(UnavailableError) as excinfo:
        orchestrator.submit("video-7", CAPTIONS, CaptionStyle())
    assert "connection refused" in excinfo.value.message


def test_submit_rejected_by_server(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([], submit_response=AccessorResponse(success=False, error="video not found"))
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    with pytest.raises(TransportError) as excinfo:
        orchestrator.submit("video-7", CAPTIONS, CaptionStyle())
    assert not isinstance(excinfo.value, UnavailableError)
    assert excinfo.value.message == "video not found"


def test_submit_without_job_id(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([], submit_response=responses.ok({}))
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    with pytest.raises(TransportError, match="No job ID"):
        orchestrator.submit("video-7", CAPTIONS, CaptionStyle())


def test_export_resolves_download_url(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("completed", 100, downloadUrl="https://cdn/out.mp4")])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    result = orchestrator.export("video-7", CAPTIONS, CaptionStyle())

    assert result.download_url == "https://cdn/out.mp4"
    assert result.location == "https://cdn/out.mp4"
    assert backend.downloads == []


def test_export_downloads_bytes_when_no_url(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend(
        [responses.status("completed", 100, outputPath="renders/job-1.webm")],
        artifact=b"\x00\x01rendered",
    )
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    result = orchestrator.export("video-7", CAPTIONS, CaptionStyle())

    assert backend.downloads == ["job-1"]
    assert result.path is not None
    assert result.path.name == "export-job-1.webm"
    assert result.path.read_bytes() == b"\x00\x01rendered"


def test_export_writes_manifest(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("completed", 100, downloadUrl="https://cdn/out.mp4")])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    orchestrator.export("video-7", CAPTIONS, CaptionStyle())

    manifest = json.loads(orchestrator.workspace.export_manifest.read_text(encoding="utf-8"))
    assert manifest["run_id"] == "run1"
    assert manifest["job_id"] == "job-1"
    assert [s["name"] for s in manifest["steps"]] == ["submit", "poll"]
    assert manifest["captions"]["count"] == 2
    assert manifest["captions"]["end_seconds"] == 12.0
    assert manifest["final_status"]["status"] == "completed"
    assert manifest["result"]["download_url"] == "https://cdn/out.mp4"
    assert manifest["error"] is None


def test_remote_failure_surfaces(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("failed", 30, error="encoder crashed")])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    with pytest.raises(RemoteJobError, match="encoder crashed"):
        orchestrator.export("video-7", CAPTIONS, CaptionStyle())

    manifest = json.loads(orchestrator.workspace.export_manifest.read_text(encoding="utf-8"))
    assert manifest["error"] == "encoder crashed"
    assert manifest["result"] is None
    assert [(s["name"], s["ok"]) for s in manifest["steps"]] == [("submit", True), ("poll", False)]
    assert manifest["steps"][1]["failed_with"] == "RemoteJobError"


def test_exhausted_retries_surface(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([TransportError("HTTP error! status: 503")])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    orchestrator.submit("video-7", CAPTIONS, CaptionStyle())
    scheduler.fire_next()
    scheduler.fire_next()

    with pytest.raises(TransportError, match="after 3 attempts"):
        orchestrator.wait_for_completion(0)
    assert len(backend.status_calls) == 3


def test_polling_ceiling_raises_timeout(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("processing", 20)])
    orchestrator = _orchestrator(backend, scheduler, tmp_path, max_polling_seconds=0.01)

    orchestrator.submit("video-7", CAPTIONS, CaptionStyle())
    with pytest.raises(ExportTimeoutError):
        orchestrator.wait_for_completion()

    assert not orchestrator.poller.is_polling
    assert scheduler.handles[0].cancelled


def test_cancel_before_completion(make_backend, responses, scheduler, tmp_path) -> None:  # noqa: ANN001
    backend = make_backend([responses.status("processing", 20)])
    orchestrator = _orchestrator(backend, scheduler, tmp_path)

    orchestrator.submit("video-7", CAPTIONS, CaptionStyle())
    orchestrator.cancel()

    with pytest.raises(TransportError, match="stopped before it finished"):
        orchestrator.wait_for_completion(0)


def test_fallback_srt(make_backend, scheduler, tmp_path) -> None:  # noqa: ANN001
    orchestrator = _orchestrator(make_backend([]), scheduler, tmp_path)

    path = orchestrator.fallback_srt(CAPTIONS)

    assert path == orchestrator.workspace.captions_srt
    assert [c.text for c in read_srt(path)] == ["Hello", "World"]


def test_describe_failure_distinguishes_causes() -> None:
    assert "wait longer" in describe_failure(ExportTimeoutError("still rendering"))
    assert "Check your connection" in describe_failure(UnavailableError("refused"))
    assert describe_failure(RemoteJobError("boom")) == "Export failed on the server: boom"
    assert "transport failure" in describe_failure(TransportError("HTTP 500"))
    assert describe_failure(ValidationError("empty")) == "Runtime error: empty"
