"""Speech-presence strategies and the pipeline that runs them."""

from .base import ClassificationStrategy
from .energy import EnergyThresholdStrategy
from .pipeline import ClassificationPipeline
from .sound import SoundClassifierStrategy
from .transcript import TranscriptStrategy

__all__ = [
    "ClassificationPipeline",
    "ClassificationStrategy",
    "EnergyThresholdStrategy",
    "SoundClassifierStrategy",
    "TranscriptStrategy",
]
