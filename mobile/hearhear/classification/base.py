"""Strategy protocol for speech-presence detection."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..audio.types import AudioChunk, ClassificationVerdict


@runtime_checkable
class ClassificationStrategy(Protocol):
    """One tier of the fallback chain.

    ``classify`` returns ``INCONCLUSIVE`` to hand the chunk to the next tier;
    any other verdict ends the chain.
    """

    name: str

    def available(self) -> bool:
        ...

    def classify(self, chunk: AudioChunk) -> ClassificationVerdict:
        ...


__all__ = ["ClassificationStrategy"]
