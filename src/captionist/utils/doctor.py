from __future__ import annotations

import sys
import tempfile
from pathlib import Path

from captionist.clients.http import ApiClient
from captionist.config.settings import Settings
from captionist.domain.contracts import HealthAccessor
from captionist.exceptions import TransportError


def _check_writable(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path, delete=True):
            return True
    except OSError:
        return False


def _get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("captionist")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _status_line(ok: bool, label: str, detail: str = "") -> str:
    icon = "✅" if ok else "❌"
    return f"{icon} {label}{detail}"


def _warn_line(label: str, detail: str = "") -> str:
    return f"⚠️ {label}{detail}"


def _backend_line(settings: Settings, health: HealthAccessor | None) -> str:
    if not settings.enable_backend:
        return _warn_line("Export backend", " (disabled, exports fall back to SRT)")
    client = health or ApiClient(settings.api_url)
    try:
        response = client.health_check()
    except TransportError as exc:
        return _warn_line("Export backend", f": unreachable ({exc.message})")
    if not response.success:
        return _warn_line("Export backend", f": unhealthy ({response.error or 'no detail'})")
    return _status_line(True, "Export backend", f": {settings.api_url}")


def run_doctor(settings: Settings, *, health: HealthAccessor | None = None) -> int:
    required_ok = True
    lines: list[str] = []

    lines.append("Captionist Doctor")
    lines.append("")

    python_version = sys.version.split()[0]
    lines.append(_status_line(True, "Python", f": {python_version}"))
    lines.append(_status_line(True, "Captionist version", f": {_get_version()}"))

    workdir = Path(settings.workdir).expanduser().resolve()
    writable = _check_writable(workdir)
    if not writable:
        required_ok = False
    lines.append(_status_line(writable, "Workdir writable", f": {workdir}"))

    # The backend is optional: without it exports degrade to local SRT.
    lines.append(_backend_line(settings, health))

    print("\n".join(lines))
    return 0 if required_ok else 1
