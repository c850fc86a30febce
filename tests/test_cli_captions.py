from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from captionist.cli.main import app
from captionist.services.subtitles import read_srt

SRT = (
    "1\n00:00:00,000 --> 00:00:01,500\nHello, there\n\n"
    "2\n00:00:01,500 --> 00:00:03,000\nSecond line\n"
)


def test_config_prints_public_settings(monkeypatch) -> None:
    monkeypatch.setenv("CAPTIONIST_API_URL", "http://render.local/api")
    runner = CliRunner()
    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["api_url"] == "http://render.local/api"
    assert data["words_per_minute"] == 150.0


def test_generate_srt(tmp_path: Path) -> None:
    transcript = tmp_path / "transcript.txt"
    transcript.write_text(" ".join(f"word{i}" for i in range(20)), encoding="utf-8")
    out = tmp_path / "captions.srt"

    runner = CliRunner()
    result = runner.invoke(app, ["generate", str(transcript), "--duration", "10", "--out", str(out)])

    assert result.exit_code == 0
    assert "Captions:" in result.stdout
    cues = read_srt(out)
    assert len(cues) == 2
    assert cues[0].start_time == 0.0
    assert cues[-1].end_time <= 10.0


def test_generate_ass_defaults_output_name(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    transcript = tmp_path / "transcript.txt"
    transcript.write_text("short and sweet", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["generate", str(transcript), "--duration", "4", "--format", "ass", "--position", "top"],
    )

    assert result.exit_code == 0
    content = (tmp_path / "captions.ass").read_text(encoding="utf-8")
    assert "Dialogue: 0,0:00:00.00,0:00:01.20,Default,,0,0,0,,short and sweet" in content
    assert ",8,20,20,20,0" in content


def test_generate_rejects_unknown_format(tmp_path: Path) -> None:
    transcript = tmp_path / "transcript.txt"
    transcript.write_text("hi", encoding="utf-8")

    runner = CliRunner(mix_stderr=False)
    result = runner.invoke(app, ["generate", str(transcript), "--duration", "4", "--format", "vtt"])

    assert result.exit_code != 0
    assert "Invalid --format" in result.stderr


def test_convert_srt_to_ass(tmp_path: Path) -> None:
    srt = tmp_path / "in.srt"
    srt.write_text(SRT, encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "convert",
            str(srt),
            "--font",
            "Inter",
            "--font-size",
            "40",
            "--bold",
            "--color",
            "#FFCC00",
            "--position",
            "center",
        ],
    )

    assert result.exit_code == 0
    content = (tmp_path / "in.ass").read_text(encoding="utf-8")
    assert "Style: Default,Inter,40,&H00CCFF&,&H000000FF&,&H000000&,&H000000&,-1," in content
    assert "Dialogue: 0,0:00:00.00,0:00:01.50,Default,,0,0,0,,Hello\\, there" in content
    assert content.count("Dialogue:") == 2
