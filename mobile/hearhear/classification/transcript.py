"""Transcript tier: speech-to-text with a bounded wait."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterator, Protocol

from ..audio.types import AudioChunk, ClassificationVerdict

try:  # pragma: no cover - optional heavy dependency
    from faster_whisper import WhisperModel  # type: ignore
except Exception:  # pragma: no cover
    WhisperModel = None  # type: ignore

LOGGER = logging.getLogger("hearhear.classify.transcript")


class SpeechRecognizer(Protocol):
    def available(self) -> bool:
        ...

    def partial_transcripts(self, path: Path) -> Iterator[str]:
        """Yield the running transcript as the engine makes progress."""
        ...


class WhisperRecognizer:
    """Loads faster-whisper on first use and streams segment text."""

    def __init__(
        self,
        model: str = "tiny",
        *,
        device: str = "cpu",
        compute_type: str = "int8",
        language: str | None = None,
    ) -> None:
        self.model_name = model
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self._lock = threading.Lock()
        self._model = None

    def available(self) -> bool:
        return WhisperModel is not None

    def _load_model(self) -> WhisperModel:
        if WhisperModel is None:
            raise RuntimeError("faster-whisper is not installed")
        if self._model is None:
            with self._lock:
                if self._model is None:
                    try:
                        self._model = WhisperModel(
                            self.model_name,
                            device=self.device,
                            compute_type=self.compute_type,
                        )
                    except Exception as exc:  # pragma: no cover - hardware/env dep
                        LOGGER.error("Failed to load Whisper model '%s': %s", self.model_name, exc)
                        raise
        return self._model

    def partial_transcripts(self, path: Path) -> Iterator[str]:
        model = self._load_model()
        segments, _info = model.transcribe(str(path), language=self.language, beam_size=5, vad_filter=True)
        pieces: list[str] = []
        for segment in segments:
            text = (segment.text or "").strip()
            if text:
                pieces.append(text)
            yield " ".join(pieces)


class TranscriptStrategy:
    """Speech is present if the engine produced any text before the deadline.

    Runs only once speech recognition has been authorized. An engine error
    with no text seen is inconclusive, never a claim of silence.
    """

    name = "transcript"

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        authorized: Callable[[], bool],
        *,
        timeout: float = 15.0,
        enabled: bool = True,
    ) -> None:
        self.recognizer = recognizer
        self.authorized = authorized
        self.timeout = timeout
        self.enabled = enabled

    def available(self) -> bool:
        return self.enabled and self.authorized() and self.recognizer.available()

    def classify(self, chunk: AudioChunk) -> ClassificationVerdict:
        if not self.available():
            return ClassificationVerdict.INCONCLUSIVE
        heard = threading.Event()
        done = threading.Event()
        errors: list[BaseException] = []

        def _run() -> None:
            try:
                for text in self.recognizer.partial_transcripts(chunk.storage_location):
                    if text and text.strip():
                        heard.set()
            except Exception as exc:
                errors.append(exc)
            finally:
                done.set()

        worker = threading.Thread(target=_run, name=f"transcript-{chunk.storage_location.stem}", daemon=True)
        worker.start()
        if not done.wait(self.timeout):
            LOGGER.warning(
                "Transcript for %s timed out after %.1fs", chunk.storage_location.name, self.timeout
            )
            if heard.is_set():
                return ClassificationVerdict.SPEECH_PRESENT
            return ClassificationVerdict.INCONCLUSIVE
        if heard.is_set():
            return ClassificationVerdict.SPEECH_PRESENT
        if errors:
            LOGGER.warning("Speech engine failed on %s: %s", chunk.storage_location.name, errors[0])
            return ClassificationVerdict.INCONCLUSIVE
        return ClassificationVerdict.SPEECH_ABSENT


__all__ = ["SpeechRecognizer", "TranscriptStrategy", "WhisperRecognizer"]
