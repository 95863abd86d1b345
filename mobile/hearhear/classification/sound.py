"""Sound-classifier tier backed by WebRTC VAD frame decisions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator

import numpy as np

from ..audio.decoding import decode_mono, resample, to_int16
from ..audio.types import AudioChunk, ClassificationVerdict

try:  # Optional dependency; the tier reports itself unavailable without it.
    import webrtcvad
except Exception:  # pragma: no cover - best effort import
    webrtcvad = None

LOGGER = logging.getLogger("hearhear.classify.sound")

SPEECH_LABEL = "speech"
BACKGROUND_LABEL = "background"
_VAD_RATES = (8000, 16000, 32000, 48000)


@dataclass(slots=True)
class SoundClassification:
    """Confidence for one label over one analysis window."""

    label: str
    confidence: float
    start_s: float


class VadSoundClassifier:
    """Labels fixed windows by the share of 30 ms frames WebRTC VAD calls speech."""

    def __init__(
        self,
        *,
        aggressiveness: int = 2,
        frame_ms: int = 30,
        window_ms: int = 1000,
        analysis_rate: int = 16000,
    ) -> None:
        if webrtcvad is None:
            raise RuntimeError("webrtcvad is not installed")
        if analysis_rate not in _VAD_RATES:
            raise ValueError(f"WebRTC VAD cannot analyse {analysis_rate} Hz audio")
        self._vad = webrtcvad.Vad(min(max(aggressiveness, 0), 3))
        self.frame_ms = frame_ms
        self.window_ms = max(window_ms, frame_ms)
        self.analysis_rate = analysis_rate

    def analyze(self, samples: np.ndarray, sample_rate: int) -> Iterator[SoundClassification]:
        pcm = to_int16(resample(samples, sample_rate, self.analysis_rate))
        frame_len = int(self.analysis_rate * self.frame_ms / 1000)
        frames_per_window = max(1, self.window_ms // self.frame_ms)
        window_len = frame_len * frames_per_window
        for offset in range(0, len(pcm) - frame_len + 1, window_len):
            window = pcm[offset : offset + window_len]
            total = 0
            voiced = 0
            for start in range(0, len(window) - frame_len + 1, frame_len):
                frame = window[start : start + frame_len]
                total += 1
                if self._vad.is_speech(frame.tobytes(), self.analysis_rate):
                    voiced += 1
            if not total:
                continue
            share = voiced / total
            start_s = offset / float(self.analysis_rate)
            yield SoundClassification(SPEECH_LABEL, share, start_s)
            yield SoundClassification(BACKGROUND_LABEL, 1.0 - share, start_s)


class SoundClassifierStrategy:
    name = "sound-classifier"

    def __init__(
        self,
        *,
        threshold: float = 0.5,
        aggressiveness: int = 2,
        enabled: bool = True,
        factory: Callable[[], VadSoundClassifier] | None = None,
    ) -> None:
        self.threshold = threshold
        self.enabled = enabled
        self._factory = factory or (lambda: VadSoundClassifier(aggressiveness=aggressiveness))

    def available(self) -> bool:
        return self.enabled and webrtcvad is not None

    def classify(self, chunk: AudioChunk) -> ClassificationVerdict:
        best = 0.0
        try:
            classifier = self._factory()
            samples, sample_rate = decode_mono(chunk.storage_location)
            for result in classifier.analyze(samples, sample_rate):
                if result.label == SPEECH_LABEL:
                    best = max(best, result.confidence)
        except Exception as exc:
            LOGGER.warning("Sound classifier failed on %s: %s", chunk.storage_location.name, exc)
            return ClassificationVerdict.SPEECH_ABSENT
        LOGGER.debug("Peak speech confidence %.2f for %s", best, chunk.storage_location.name)
        if best >= self.threshold:
            return ClassificationVerdict.SPEECH_PRESENT
        return ClassificationVerdict.SPEECH_ABSENT


__all__ = ["SoundClassification", "SoundClassifierStrategy", "VadSoundClassifier"]
