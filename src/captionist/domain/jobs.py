from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class JobState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in {JobState.COMPLETED, JobState.FAILED}


class PollerPhase(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self in {PollerPhase.COMPLETED, PollerPhase.FAILED, PollerPhase.EXHAUSTED}


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class JobStatus:
    job_id: str
    status: JobState
    progress: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
    estimated_time_remaining: Optional[float] = None
    processing_speed: Optional[float] = None
    output_path: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def pending(cls, job_id: str, message: str = "Starting export...") -> "JobStatus":
        return cls(job_id=job_id, status=JobState.PENDING, progress=0, message=message)

    @classmethod
    def from_payload(cls, data: dict, *, fallback_job_id: str) -> "JobStatus":
        """
        Map a remote status payload onto JobStatus.

        Raises ValueError for payloads that are not a status record
        (unknown status, non-numeric progress).
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a status object, got {type(data).__name__}.")
        raw_status = data.get("status")
        try:
            state = JobState(str(raw_status).lower())
        except ValueError:
            raise ValueError(f"Unknown job status: {raw_status!r}") from None
        progress = int(float(data.get("progress") or 0))
        return cls(
            job_id=str(_first(data, "id", "jobId", "job_id") or fallback_job_id),
            status=state,
            progress=max(0, min(100, progress)),
            message=data.get("message"),
            error=data.get("error"),
            estimated_time_remaining=_optional_float(
                _first(data, "estimatedTimeRemaining", "estimated_time_remaining")
            ),
            processing_speed=_optional_float(_first(data, "processingSpeed", "processing_speed")),
            output_path=_first(data, "outputPath", "output_path"),
            download_url=_first(data, "downloadUrl", "redirectUrl", "download_url"),
        )


@dataclass(frozen=True)
class AccessorResponse:
    """Envelope returned by every remote accessor."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "AccessorResponse":
        if not isinstance(payload, dict):
            return cls(success=False, error="Malformed response envelope")
        return cls(
            success=bool(payload.get("success")),
            data=payload.get("data"),
            error=payload.get("error"),
            message=payload.get("message"),
        )


@dataclass
class PollerState:
    job_id: Optional[str] = None
    last_status: Optional[JobStatus] = None
    is_polling: bool = False
    retry_count: int = 0
    file_size_hint: int = 0
    phase: PollerPhase = PollerPhase.IDLE
    error: Optional[str] = None

    def snapshot(self) -> "PollerState":
        return replace(self)
