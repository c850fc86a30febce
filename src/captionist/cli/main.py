from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, TypeVar

import typer

from captionist.clients.http import ApiClient
from captionist.config.settings import Settings
from captionist.domain.captions import CAPTION_TYPES, POSITIONS, CaptionSegment, CaptionStyle
from captionist.domain.workspace import Workspace
from captionist.exceptions import CaptionistError, UnavailableError
from captionist.services.export import ExportOrchestrator, describe_failure
from captionist.services.poller import JobProgressPoller
from captionist.services.segmentation import generate_captions
from captionist.services.subtitles import cues_to_segments, read_srt, write_ass, write_srt
from captionist.utils.doctor import run_doctor
from captionist.utils.logging import configure_logging, get_logger

app = typer.Typer(add_completion=False)
log = get_logger(__name__)

T = TypeVar("T")


def _fail(exc: CaptionistError, message: str | None = None) -> typer.Exit:
    typer.echo(f"{exc.label()}: {message or exc.message}", err=True)
    return typer.Exit(code=exc.exit_code or 1)


def _guard(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except CaptionistError as exc:
        raise _fail(exc) from exc


def _load_settings(
    *,
    workdir: str | None = None,
    api_url: str | None = None,
    log_level: str | None = None,
) -> Settings:
    settings = Settings()
    if workdir is not None:
        settings.workdir = workdir
    if api_url is not None:
        settings.api_url = api_url

    # Configure logging after overrides so we use the final resolved level
    configure_logging(log_level or settings.log_level)
    return settings


def _parse_position(position: str | None, settings: Settings) -> str:
    value = (position or settings.caption_position).strip().lower()
    if value not in POSITIONS:
        raise typer.BadParameter(f"Unknown position '{position}'. Use one of: {', '.join(POSITIONS)}.")
    return value


def _parse_caption_type(caption_type: str) -> str:
    value = caption_type.strip().lower()
    if value not in CAPTION_TYPES:
        raise typer.BadParameter(f"Unknown caption type '{caption_type}'. Use one of: {', '.join(CAPTION_TYPES)}.")
    return value


def _read_captions(srt_file: Path) -> list[CaptionSegment]:
    if not srt_file.exists():
        raise typer.BadParameter(f"SRT file not found: {srt_file}")
    return cues_to_segments(read_srt(srt_file))


@app.command()
def config() -> None:
    """Print resolved config."""
    s = Settings()
    typer.echo(json.dumps(s.to_public_dict(), indent=2))


@app.command()
def generate(
    transcript_file: Path = typer.Argument(..., help="Plain-text transcript."),
    duration: float = typer.Option(..., help="Video duration in seconds."),
    out: Path = typer.Option(None, help="Output file (defaults to captions.<format>)."),
    fmt: str = typer.Option("srt", "--format", help="Output format: srt or ass."),
    position: str = typer.Option(None, help="Caption position for ASS output (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Generate timed captions from a transcript."""
    settings = _load_settings(log_level=log_level)
    fmt = fmt.strip().lower()
    if fmt not in {"srt", "ass"}:
        raise typer.BadParameter("Invalid --format. Use: srt, ass.")
    if not transcript_file.exists():
        raise typer.BadParameter(f"Transcript not found: {transcript_file}")

    transcript = transcript_file.read_text(encoding="utf-8")
    out_path = out or Path(f"captions.{fmt}")

    def _run() -> Path:
        captions = generate_captions(transcript, duration, settings.segmentation_config())
        if fmt == "srt":
            return write_srt(captions, out_path)
        style = CaptionStyle(position=_parse_position(position, settings))
        return write_ass(
            captions,
            style,
            out_path,
            play_res_x=settings.play_res_x,
            play_res_y=settings.play_res_y,
        )

    written = _guard(_run)
    typer.echo(f"✅ Captions: {written}")


@app.command()
def convert(
    srt_file: Path = typer.Argument(..., help="Input SRT file."),
    out: Path = typer.Option(None, help="Output ASS file (defaults to <input>.ass)."),
    font: str = typer.Option("Arial", help="Font family."),
    font_size: int = typer.Option(24, help="Font size."),
    bold: bool = typer.Option(False, help="Bold captions."),
    color: str = typer.Option("#FFFFFF", help="Text color as #RRGGBB."),
    background: str = typer.Option("#000000", help="Background color as #RRGGBB, rgba(r, g, b, a) or transparent."),
    position: str = typer.Option(None, help="Caption position (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Convert an SRT file into a styled ASS file."""
    settings = _load_settings(log_level=log_level)
    style = CaptionStyle(
        font_family=font,
        font_size=font_size,
        font_weight=700 if bold else 400,
        color=color,
        background_color=background,
        position=_parse_position(position, settings),
    )
    out_path = out or srt_file.with_suffix(".ass")

    def _run() -> Path:
        captions = _read_captions(srt_file)
        return write_ass(
            captions,
            style,
            out_path,
            play_res_x=settings.play_res_x,
            play_res_y=settings.play_res_y,
        )

    written = _guard(_run)
    typer.echo(f"✅ ASS: {written}")


@app.command()
def export(
    srt_file: Path = typer.Argument(..., help="Captions to burn in, as SRT."),
    video_id: str = typer.Option(..., help="Video id known to the export backend."),
    workdir: str = typer.Option(None, help="Workdir for outputs (overrides config)."),
    api_url: str = typer.Option(None, help="Export backend URL (overrides config)."),
    caption_type: str = typer.Option("reel", "--type", help="Caption animation type sent to the backend."),
    position: str = typer.Option(None, help="Caption position (overrides config)."),
    timeout: float = typer.Option(None, help="Polling ceiling in seconds (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Export a video with burned-in captions, falling back to local SRT."""
    settings = _load_settings(workdir=workdir, api_url=api_url, log_level=log_level)
    style = CaptionStyle(
        position=_parse_position(position, settings),
        type=_parse_caption_type(caption_type),
    )
    captions = _guard(lambda: _read_captions(srt_file))

    workspace = Workspace.create(settings.workdir)
    _guard(
        lambda: write_ass(
            captions,
            style,
            workspace.captions_ass,
            play_res_x=settings.play_res_x,
            play_res_y=settings.play_res_y,
        )
    )
    client = ApiClient(settings.api_url)
    orchestrator = ExportOrchestrator(
        submission=client,
        status=client,
        artifacts=client,
        workspace=workspace,
        max_polling_seconds=settings.max_polling_seconds,
        settings=settings,
    )
    orchestrator.poller.subscribe(
        on_status=lambda s: typer.echo(f"⏳ {s.status.value} {s.progress}% {s.message or ''}".rstrip())
    )

    if not settings.enable_backend:
        path = orchestrator.fallback_srt(captions)
        typer.echo(f"⚠️ Export backend disabled. Captions saved: {path}")
        return

    try:
        result = orchestrator.export(video_id, captions, style, timeout=timeout)
    except UnavailableError as exc:
        path = orchestrator.fallback_srt(captions)
        typer.echo(f"⚠️ Captions saved locally: {path}")
        raise _fail(exc, describe_failure(exc)) from exc
    except CaptionistError as exc:
        raise _fail(exc, describe_failure(exc)) from exc

    typer.echo(f"✅ Done. run_id={workspace.run_id}")
    typer.echo(f"📦 Output: {result.location}")


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Export job id."),
    api_url: str = typer.Option(None, help="Export backend URL (overrides config)."),
    log_level: str = typer.Option(None, help="Log level (overrides config)."),
) -> None:
    """Fetch the current status of an export job once."""
    settings = _load_settings(api_url=api_url, log_level=log_level)
    poller = JobProgressPoller(ApiClient(settings.api_url))

    current = _guard(lambda: poller.check_progress(job_id))
    typer.echo(
        json.dumps(
            {
                "job_id": current.job_id,
                "status": current.status.value,
                "progress": current.progress,
                "message": current.message,
                "error": current.error,
                "download_url": current.download_url,
            },
            indent=2,
        )
    )


@app.command()
def doctor() -> None:
    """Run environment diagnostics."""
    settings = Settings()
    code = _guard(lambda: run_doctor(settings))
    raise typer.Exit(code=code)


def _main() -> None:
    app()


if __name__ == "__main__":
    _main()
