"""Dataclasses and enums shared across the recorder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Tuple

from ..errors import RecorderError


class ClassificationVerdict(str, Enum):
    PENDING = "pending"
    SPEECH_PRESENT = "speech_present"
    SPEECH_ABSENT = "speech_absent"
    INCONCLUSIVE = "inconclusive"

    @property
    def is_decided(self) -> bool:
        return self is not ClassificationVerdict.PENDING

    @property
    def is_definitive(self) -> bool:
        return self in (ClassificationVerdict.SPEECH_PRESENT, ClassificationVerdict.SPEECH_ABSENT)


class RecorderState(str, Enum):
    IDLE = "idle"
    AWAITING_PERMISSION = "awaiting_permission"
    RECORDING = "recording"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AudioChunk:
    """One contiguous segment of captured audio.

    Instances are immutable; the engine and the store swap in updated copies
    via ``dataclasses.replace`` when a chunk is finalized or classified.
    """

    sequence_index: int
    storage_location: Path
    created_at: datetime
    duration_target: float
    finalized: bool = False
    classification: ClassificationVerdict = ClassificationVerdict.PENDING


@dataclass(frozen=True, slots=True)
class CaptureFormat:
    sample_rate: int = 44_100
    channels: int = 1
    format: str = "OGG"
    subtype: str = "VORBIS"
    compression_level: float | None = 0.2
    blocksize: int = 2048


@dataclass(frozen=True, slots=True)
class ChunkView:
    """Observer-facing row for a stored chunk."""

    sequence: int
    location: str
    verdict: ClassificationVerdict


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    recorder_state: RecorderState
    last_error: RecorderError | None
    chunks: Tuple[ChunkView, ...] = ()
    log_lines: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_recording(self) -> bool:
        return self.recorder_state is RecorderState.RECORDING


__all__ = [
    "AudioChunk",
    "CaptureFormat",
    "ChunkView",
    "ClassificationVerdict",
    "RecorderState",
    "SessionSnapshot",
]
