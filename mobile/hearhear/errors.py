"""Errors surfaced to observers of a recording session."""

from __future__ import annotations


class RecorderError(Exception):
    """Base class for errors that carry a user-readable message."""

    default_message = "Recording failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class PermissionDenied(RecorderError):
    default_message = (
        "Microphone access has been denied. Please enable recording permissions in Settings."
    )


class ConfigurationFailed(RecorderError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Recording failed to start: {detail}")


class EncodeFailure(RecorderError):
    default_message = "Recording ended unexpectedly."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_message
        super().__init__(self.detail)


class ClassificationFault(RecorderError):
    """Raised inside a strategy; contained by the pipeline and never surfaced."""

    default_message = "Classification failed."


__all__ = [
    "ClassificationFault",
    "ConfigurationFailed",
    "EncodeFailure",
    "PermissionDenied",
    "RecorderError",
]
