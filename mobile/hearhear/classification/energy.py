"""Last-resort tier: RMS amplitude over the whole chunk."""

from __future__ import annotations

import logging

import numpy as np

from ..audio.decoding import decode_mono
from ..audio.types import AudioChunk, ClassificationVerdict

LOGGER = logging.getLogger("hearhear.classify.energy")

DEFAULT_RMS_THRESHOLD = 0.01


def rms(samples: np.ndarray) -> float:
    """Root-mean-square of normalized samples (0.0 for an empty buffer)."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


class EnergyThresholdStrategy:
    name = "energy"

    def __init__(self, threshold: float = DEFAULT_RMS_THRESHOLD) -> None:
        self.threshold = threshold

    def available(self) -> bool:
        return True

    def classify(self, chunk: AudioChunk) -> ClassificationVerdict:
        try:
            samples, _ = decode_mono(chunk.storage_location)
        except Exception as exc:
            LOGGER.warning("Could not decode %s: %s", chunk.storage_location.name, exc)
            return ClassificationVerdict.SPEECH_ABSENT
        level = rms(samples)
        LOGGER.debug("RMS %.5f for %s", level, chunk.storage_location.name)
        if level > self.threshold:
            return ClassificationVerdict.SPEECH_PRESENT
        return ClassificationVerdict.SPEECH_ABSENT


__all__ = ["DEFAULT_RMS_THRESHOLD", "EnergyThresholdStrategy", "rms"]
