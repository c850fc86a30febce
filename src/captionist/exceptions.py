from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    CONFIG = "config"
    DEPENDENCY = "dependency"
    RUNTIME = "runtime"
    FORMAT = "format"
    TRANSPORT = "transport"
    REMOTE = "remote"


DEFAULT_EXIT_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.RUNTIME: 1,
    ErrorCategory.CONFIG: 2,
    ErrorCategory.DEPENDENCY: 3,
    ErrorCategory.FORMAT: 4,
    ErrorCategory.TRANSPORT: 5,
    ErrorCategory.REMOTE: 6,
}


@dataclass
class CaptionistError(Exception):
    """Base exception for Captionist with standardized categories."""

    message: str
    category: ErrorCategory = ErrorCategory.RUNTIME
    exit_code: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.exit_code is None:
            self.exit_code = DEFAULT_EXIT_CODES.get(self.category, 1)

    def label(self) -> str:
        return {
            ErrorCategory.CONFIG: "Configuration error",
            ErrorCategory.DEPENDENCY: "Dependency error",
            ErrorCategory.RUNTIME: "Runtime error",
            ErrorCategory.FORMAT: "Format error",
            ErrorCategory.TRANSPORT: "Transport error",
            ErrorCategory.REMOTE: "Export failed",
        }.get(self.category, "Error")


class DependencyMissingError(CaptionistError):
    """Raised when a required external dependency is missing."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.DEPENDENCY,
            exit_code=exit_code,
        )


class ConfigurationError(CaptionistError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.CONFIG,
            exit_code=exit_code,
        )


class FormatError(CaptionistError):
    """Raised for malformed time strings, subtitle blocks or colors."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.FORMAT,
            exit_code=exit_code,
        )


class ValidationError(CaptionistError):
    """Raised when a caption or request would carry degenerate values."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.RUNTIME,
            exit_code=exit_code,
        )


class TransportError(CaptionistError):
    """Raised when a status, submission or download request fails."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.TRANSPORT,
            exit_code=exit_code,
        )


class UnavailableError(TransportError):
    """Raised when the remote export service cannot be reached at submit time."""


class ExportTimeoutError(TransportError):
    """Raised when an export keeps rendering past the polling ceiling."""


class RemoteJobError(CaptionistError):
    """Raised when the remote service reports the job as failed."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(
            message,
            category=ErrorCategory.REMOTE,
            exit_code=exit_code,
        )
