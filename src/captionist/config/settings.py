from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from captionist.exceptions import ConfigurationError

if TYPE_CHECKING:
    from captionist.services.segmentation import SegmentationConfig
    from captionist.services.timeline import CaptionTimeline


class Settings(BaseSettings):
    """
    Runtime configuration for Captionist.

    All settings are loaded from environment variables with the
    `CAPTIONIST_` prefix and optional `.env` support.

    This class is intentionally flat and explicit to keep runtime
    behavior predictable and debuggable.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPTIONIST_",
        env_file=".env",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------
    workdir: str = Field(
        default=".captionist",
        description="Root directory for exported captions and downloads.",
    )

    # ------------------------------------------------------------------
    # Remote export service
    # ------------------------------------------------------------------
    api_url: str = Field(
        default="http://localhost:3001/api",
        description="Base URL of the export backend.",
    )
    enable_backend: bool = Field(
        default=True,
        description="Submit exports to the backend; when false, exports fall back to local SRT.",
    )
    max_polling_seconds: float = Field(
        default=1800.0,
        description="Wall-clock ceiling for polling a single export job.",
    )

    # ------------------------------------------------------------------
    # Caption generation
    # ------------------------------------------------------------------
    max_segment_duration: float = Field(
        default=5.0,
        description="Maximum duration of a generated caption, in seconds.",
    )
    min_segment_duration: float = Field(
        default=1.0,
        description="Minimum duration of a generated caption, in seconds.",
    )
    words_per_minute: float = Field(
        default=150.0,
        description="Assumed speaking rate used to size caption windows.",
    )
    segment_overflow: str = Field(
        default="drop",
        description="What to do when captions outrun the duration: drop or redistribute.",
    )

    # ------------------------------------------------------------------
    # Subtitle output
    # ------------------------------------------------------------------
    caption_position: str = Field(
        default="bottom",
        description="Default caption position: top, center or bottom.",
    )
    play_res_x: int = Field(
        default=1080,
        description="ASS PlayResX (render width).",
    )
    play_res_y: int = Field(
        default=1920,
        description="ASS PlayResY (render height).",
    )
    caption_hold_seconds: float = Field(
        default=0.5,
        description="How long the last caption stays up across a gap before clearing.",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )

    def segmentation_config(self) -> "SegmentationConfig":
        from captionist.services.segmentation import SegmentationConfig

        return SegmentationConfig(
            max_segment_duration=self.max_segment_duration,
            min_segment_duration=self.min_segment_duration,
            words_per_minute=self.words_per_minute,
            overflow=self.segment_overflow,
        )

    def caption_timeline(self) -> "CaptionTimeline":
        from captionist.services.timeline import CaptionTimeline

        if self.caption_hold_seconds < 0:
            raise ConfigurationError("caption_hold_seconds must not be negative.")
        return CaptionTimeline(hold_seconds=self.caption_hold_seconds)

    # ------------------------------------------------------------------
    # Public / safe export
    # ------------------------------------------------------------------
    def to_public_dict(self) -> dict:
        """
        Return a dictionary of non-sensitive settings suitable
        for logging or CLI display.
        """
        return {
            "workdir": self.workdir,
            "api_url": self.api_url,
            "enable_backend": self.enable_backend,
            "max_polling_seconds": self.max_polling_seconds,
            "max_segment_duration": self.max_segment_duration,
            "min_segment_duration": self.min_segment_duration,
            "words_per_minute": self.words_per_minute,
            "segment_overflow": self.segment_overflow,
            "caption_position": self.caption_position,
            "play_res_x": self.play_res_x,
            "play_res_y": self.play_res_y,
            "caption_hold_seconds": self.caption_hold_seconds,
            "log_level": self.log_level,
        }
