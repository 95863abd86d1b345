"""Decode stored chunks into normalized mono samples."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import soundfile as sf


def decode_mono(path: Path | str) -> Tuple[np.ndarray, int]:
    """Return float32 samples in [-1, 1] and the file's sample rate."""
    audio, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    if audio.shape[1] > 1:
        return audio.mean(axis=1), sample_rate
    return audio[:, 0], sample_rate


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    if source_rate == target_rate or samples.size == 0:
        return samples
    length = max(1, int(round(len(samples) * target_rate / source_rate)))
    old_t = np.arange(len(samples)) / float(source_rate)
    new_t = np.arange(length) / float(target_rate)
    return np.interp(new_t, old_t, samples).astype(np.float32)


def to_int16(samples: np.ndarray) -> np.ndarray:
    return (np.clip(samples, -1.0, 1.0) * 32767.0).astype(np.int16)


__all__ = ["decode_mono", "resample", "to_int16"]
