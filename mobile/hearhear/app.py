"""Composition root: builds a ready-to-use session from settings."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .audio.capture import CaptureDevice, SoundDeviceCapture
from .audio.types import CaptureFormat
from .classification.base import ClassificationStrategy
from .classification.energy import EnergyThresholdStrategy
from .classification.pipeline import ClassificationPipeline
from .classification.sound import SoundClassifierStrategy
from .classification.transcript import TranscriptStrategy, WhisperRecognizer
from .config import CONFIG, RecorderSettings
from .services.dispatcher import SerialDispatcher
from .services.lease import BackgroundHost, ExecutionLeaseManager, TimerBackgroundHost
from .services.logger import LogBuffer, install_log_buffer
from .services.permissions import DesktopPermissionProvider, PermissionGate, PermissionProvider
from .session import SessionController
from .store.chunk_store import ChunkStore


def capture_format(settings: RecorderSettings) -> CaptureFormat:
    return CaptureFormat(
        sample_rate=settings.sample_rate,
        channels=settings.channels,
        format=settings.audio_format,
        subtype=settings.audio_subtype,
        compression_level=settings.compression_level,
        blocksize=settings.blocksize,
    )


def build_strategies(settings: RecorderSettings, gate: PermissionGate) -> List[ClassificationStrategy]:
    """Transcript, sound classifier, energy: in that order."""
    return [
        TranscriptStrategy(
            WhisperRecognizer(
                settings.whisper_model,
                device=settings.whisper_device,
                compute_type=settings.whisper_compute_type,
                language=settings.whisper_language,
            ),
            authorized=lambda: gate.speech_authorized,
            timeout=settings.transcript_timeout,
            enabled=settings.transcript_enabled,
        ),
        SoundClassifierStrategy(
            threshold=settings.speech_confidence_threshold,
            aggressiveness=settings.vad_aggressiveness,
            enabled=settings.sound_classifier_enabled,
        ),
        EnergyThresholdStrategy(settings.rms_threshold),
    ]


def _device_spec(raw: str | None) -> int | str | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return raw


def create_session(
    settings: Optional[RecorderSettings] = None,
    *,
    device: Optional[CaptureDevice] = None,
    permissions: Optional[PermissionProvider] = None,
    host: Optional[BackgroundHost] = None,
    strategies: Optional[Sequence[ClassificationStrategy]] = None,
    log_buffer: Optional[LogBuffer] = None,
) -> SessionController:
    settings = settings or CONFIG
    input_device = _device_spec(settings.input_device)
    gate = PermissionGate(
        permissions
        or DesktopPermissionProvider(
            speech_authorized=settings.speech_recognition_authorized,
            device=input_device,
        )
    )
    dispatcher = SerialDispatcher()
    store = ChunkStore(
        settings.chunks_dir,
        extension=settings.chunk_extension,
        chunk_seconds=settings.chunk_seconds,
    )
    pipeline = ClassificationPipeline(
        store,
        dispatcher,
        strategies if strategies is not None else build_strategies(settings, gate),
        max_workers=settings.classifier_workers,
    )
    return SessionController(
        device=device or SoundDeviceCapture(input_device),
        permissions=gate,
        leases=ExecutionLeaseManager(
            host or TimerBackgroundHost(settings.lease_max_seconds),
            label=settings.lease_label,
        ),
        store=store,
        pipeline=pipeline,
        dispatcher=dispatcher,
        capture_format=capture_format(settings),
        chunk_seconds=settings.chunk_seconds,
        stop_grace_seconds=settings.stop_grace_seconds,
        transcript_configured=settings.transcript_enabled,
        log_buffer=log_buffer or install_log_buffer(settings.log_history),
    )


__all__ = ["build_strategies", "capture_format", "create_session"]
