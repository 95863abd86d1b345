"""Capture devices that record one chunk at a time into a file."""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Protocol

import numpy as np
import soundfile as sf

from ..errors import ConfigurationFailed
from .types import CaptureFormat

LOGGER = logging.getLogger("hearhear.capture")


class CaptureDelegate(Protocol):
    def capture_finished(self, target: Path, success: bool) -> None:
        ...

    def capture_failed(self, target: Path, error: BaseException) -> None:
        ...


class CaptureDevice(ABC):
    """Records into ``target`` for a fixed duration, then reports back.

    At most one recording is outstanding. Completion is delivered to
    ``delegate`` from whatever thread the device runs on; ``stop()`` ends the
    current recording early and still reports it through
    ``capture_finished``.
    """

    delegate: Optional[CaptureDelegate] = None

    @abstractmethod
    def configure(self, fmt: CaptureFormat) -> None:
        """Validate and apply the capture format. Raises ``ConfigurationFailed``."""

    @abstractmethod
    def activate(self) -> None:
        ...

    @abstractmethod
    def deactivate(self) -> None:
        ...

    @abstractmethod
    def record_for(self, duration: float, target: Path) -> bool:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


class SoundDeviceCapture(CaptureDevice):
    """Microphone capture through PortAudio, encoded with libsndfile."""

    def __init__(self, device: int | str | None = None) -> None:
        self.device = device
        self.delegate = None
        self._fmt = CaptureFormat()
        self._sd = self._try_import_sounddevice()
        self._active = False
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._target: Path | None = None

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception:
            return None

    def configure(self, fmt: CaptureFormat) -> None:
        if self._sd is None:
            raise ConfigurationFailed("sounddevice/PortAudio is not available")
        if not sf.check_format(fmt.format, fmt.subtype):
            raise ConfigurationFailed(f"unsupported encoding {fmt.format}/{fmt.subtype}")
        try:
            self._sd.check_input_settings(
                device=self.device,
                samplerate=fmt.sample_rate,
                channels=fmt.channels,
                dtype="float32",
            )
        except Exception as exc:
            raise ConfigurationFailed(str(exc)) from exc
        self._fmt = fmt

    def activate(self) -> None:
        self._active = True

    def deactivate(self) -> None:
        self._active = False

    def record_for(self, duration: float, target: Path) -> bool:
        with self._lock:
            if not self._active or self._sd is None or self._target is not None:
                return False
            self._target = target
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._record,
                args=(duration, target, self._stop_event),
                name=f"capture-{target.stem}",
                daemon=True,
            )
        self._thread.start()
        return True

    def stop(self) -> None:
        with self._lock:
            if self._stop_event is not None:
                self._stop_event.set()

    def _record(self, duration: float, target: Path, stop_event: threading.Event) -> None:
        fmt = self._fmt
        frames_needed = max(1, int(round(duration * fmt.sample_rate)))
        blocks: "queue.Queue[np.ndarray]" = queue.Queue()

        def _callback(indata, frames, time_info, status) -> None:  # pragma: no cover - PortAudio thread
            if status:
                LOGGER.warning("Input status for %s: %s", target.name, status)
            blocks.put(indata.copy())

        written = 0
        try:
            sink_options = {}
            if fmt.compression_level is not None:
                sink_options["compression_level"] = fmt.compression_level
            with sf.SoundFile(
                str(target),
                mode="w",
                samplerate=fmt.sample_rate,
                channels=fmt.channels,
                format=fmt.format,
                subtype=fmt.subtype,
                **sink_options,
            ) as sink, self._sd.InputStream(
                samplerate=fmt.sample_rate,
                blocksize=fmt.blocksize,
                device=self.device,
                channels=fmt.channels,
                dtype="float32",
                callback=_callback,
            ):
                while written < frames_needed and not stop_event.is_set():
                    try:
                        block = blocks.get(timeout=0.5)
                    except queue.Empty:
                        continue
                    block = block[: frames_needed - written]
                    sink.write(block)
                    written += len(block)
        except Exception as exc:
            LOGGER.error("Capture into %s failed: %s", target.name, exc)
            self._release()
            if self.delegate is not None:
                self.delegate.capture_failed(target, exc)
            return
        self._release()
        LOGGER.debug("Captured %d frames into %s", written, target.name)
        if self.delegate is not None:
            self.delegate.capture_finished(target, True)

    def _release(self) -> None:
        with self._lock:
            self._target = None
            self._stop_event = None


__all__ = ["CaptureDelegate", "CaptureDevice", "SoundDeviceCapture"]
