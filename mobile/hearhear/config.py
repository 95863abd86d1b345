"""Recorder settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if not raw:
        return None
    return float(raw)


class RecorderSettings(BaseModel):
    data_dir: str = Field(default=os.getenv("HEARHEAR_DATA_DIR", "data"))
    chunks_dirname: str = Field(default=os.getenv("HEARHEAR_CHUNKS_DIRNAME", "Chunks"))
    chunk_seconds: float = Field(default=float(os.getenv("HEARHEAR_CHUNK_SECONDS", "30")))
    sample_rate: int = Field(default=int(os.getenv("HEARHEAR_SAMPLE_RATE", "44100")))
    channels: int = Field(default=1)
    audio_format: str = Field(default=os.getenv("HEARHEAR_AUDIO_FORMAT", "OGG"))
    audio_subtype: str = Field(default=os.getenv("HEARHEAR_AUDIO_SUBTYPE", "VORBIS"))
    chunk_extension: str = Field(default=os.getenv("HEARHEAR_CHUNK_EXTENSION", ".ogg"))
    compression_level: float = Field(
        default=float(os.getenv("HEARHEAR_COMPRESSION_LEVEL", "0.2"))
    )
    blocksize: int = Field(default=int(os.getenv("HEARHEAR_BLOCKSIZE", "2048")))
    input_device: str | None = Field(default=os.getenv("HEARHEAR_INPUT_DEVICE"))
    lease_label: str = Field(default="BackgroundAudioRecording")
    lease_max_seconds: float | None = Field(
        default_factory=lambda: _optional_float("HEARHEAR_LEASE_MAX_SECONDS")
    )
    stop_grace_seconds: float = Field(
        default=float(os.getenv("HEARHEAR_STOP_GRACE_SECONDS", "2"))
    )
    transcript_enabled: bool = Field(default=_flag("HEARHEAR_TRANSCRIPT"))
    speech_recognition_authorized: bool = Field(
        default=_flag("HEARHEAR_SPEECH_AUTHORIZED")
    )
    transcript_timeout: float = Field(
        default=float(os.getenv("HEARHEAR_TRANSCRIPT_TIMEOUT", "15"))
    )
    whisper_model: str = Field(default=os.getenv("WHISPER_MODEL", "tiny"))
    whisper_device: str = Field(default=os.getenv("WHISPER_DEVICE", "cpu"))
    whisper_compute_type: str = Field(
        default=os.getenv("WHISPER_COMPUTE_TYPE", "int8")
    )
    whisper_language: str | None = Field(default=os.getenv("WHISPER_LANGUAGE"))
    sound_classifier_enabled: bool = Field(
        default=_flag("HEARHEAR_SOUND_CLASSIFIER", "true")
    )
    speech_confidence_threshold: float = Field(
        default=float(os.getenv("HEARHEAR_SPEECH_CONFIDENCE", "0.5"))
    )
    vad_aggressiveness: int = Field(
        default=int(os.getenv("HEARHEAR_VAD_AGGRESSIVENESS", "2"))
    )
    rms_threshold: float = Field(default=float(os.getenv("HEARHEAR_RMS_THRESHOLD", "0.01")))
    classifier_workers: int = Field(
        default=int(os.getenv("HEARHEAR_CLASSIFIER_WORKERS", "2"))
    )
    log_level: str = Field(default=os.getenv("HEARHEAR_LOG_LEVEL", "INFO"))
    log_history: int = Field(default=int(os.getenv("HEARHEAR_LOG_HISTORY", "200")))

    @property
    def chunks_dir(self) -> Path:
        return Path(self.data_dir) / self.chunks_dirname


@lru_cache()
def get_settings() -> RecorderSettings:
    return RecorderSettings()


CONFIG = get_settings()
