from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from captionist.domain.captions import CaptionSegment, timeline_end
from captionist.domain.jobs import JobStatus
from captionist.domain.workspace import Workspace
from captionist.utils.text import sha256_text
from captionist.utils.timing import StepTiming

if TYPE_CHECKING:
    from captionist.services.export import ExportResult


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()


def _serialize_steps(steps: Iterable[StepTiming]) -> list[dict[str, Any]]:
    serialized = []
    for step in steps:
        serialized.append(
            {
                "name": step.name,
                "started_at": _iso(step.started_at),
                "finished_at": _iso(step.finished_at),
                "duration_s": step.duration_s,
                "ok": step.ok,
                "failed_with": step.failed_with,
            }
        )
    return serialized


def _status_entry(status: JobStatus | None) -> dict[str, Any] | None:
    if status is None:
        return None
    return {
        "job_id": status.job_id,
        "status": status.status.value,
        "progress": status.progress,
        "message": status.message,
        "error": status.error,
        "output_path": status.output_path,
        "download_url": status.download_url,
    }


def _captions_entry(captions: Sequence[CaptionSegment]) -> dict[str, Any]:
    joined = "\n".join(c.text for c in captions)
    return {
        "count": len(captions),
        "end_seconds": timeline_end(captions),
        "text_sha256": sha256_text(joined),
    }


def _result_entry(result: "ExportResult | None") -> dict[str, Any] | None:
    if result is None:
        return None
    path = Path(result.path) if result.path else None
    return {
        "download_url": result.download_url,
        "path": str(path) if path else None,
        "size_bytes": path.stat().st_size if path and path.exists() else None,
    }


def write_export_manifest(
    *,
    workspace: Workspace,
    captions: Sequence[CaptionSegment],
    steps: Iterable[StepTiming],
    started_at: datetime,
    finished_at: datetime,
    job_id: str | None,
    status: JobStatus | None,
    result: "ExportResult | None" = None,
    error: str | None = None,
    settings_public: dict[str, Any] | None = None,
) -> Path:
    payload: dict[str, Any] = {
        "run_id": workspace.run_id,
        "started_at": _iso(started_at),
        "finished_at": _iso(finished_at),
        "duration_seconds_total": (finished_at - started_at).total_seconds(),
        "settings_public": settings_public or {},
        "job_id": job_id,
        "captions": _captions_entry(captions),
        "steps": _serialize_steps(steps),
        "final_status": _status_entry(status),
        "result": _result_entry(result),
        "error": error,
    }

    out = workspace.export_manifest
    out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return out

