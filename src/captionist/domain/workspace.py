from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from pathlib import Path

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class Workspace:
    root: Path
    run_id: str

    @classmethod
    def create(cls, workdir: str, run_id: str | None = None) -> "Workspace":
        rid = run_id or uuid.uuid4().hex[:12]
        root = Path(workdir).expanduser().resolve() / rid
        root.mkdir(parents=True, exist_ok=True)
        return cls(root=root, run_id=rid)

    def path(self, name: str) -> Path:
        p = self.root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def captions_srt(self) -> Path:
        return self.path("captions.srt")

    @property
    def captions_ass(self) -> Path:
        return self.path("captions.ass")

    @property
    def export_manifest(self) -> Path:
        return self.path("export.json")

    def export_video(self, job_id: str, suffix: str = ".mp4") -> Path:
        safe = _UNSAFE_NAME_RE.sub("_", job_id).strip("_") or "job"
        return self.path(f"export-{safe}{suffix}")
