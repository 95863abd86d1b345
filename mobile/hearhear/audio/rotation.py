"""Chunk rotation: finalize each chunk on device completion and start the next.

Rotation is driven by the device's completion callback rather than a wall
clock, so chunk boundaries follow real capture progress and jitter never
accumulates into drift. All engine state lives on the dispatcher thread;
device callbacks are handed over with ``dispatcher.post``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..errors import ConfigurationFailed, EncodeFailure, RecorderError
from ..metrics import CHUNKS_FINALIZED
from ..services.dispatcher import SerialDispatcher
from ..store.chunk_store import ChunkStore
from .capture import CaptureDevice
from .types import AudioChunk

LOGGER = logging.getLogger("hearhear.rotation")


class EngineState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    STOPPING = "stopping"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkRotationEngine:
    def __init__(
        self,
        device: CaptureDevice,
        store: ChunkStore,
        dispatcher: SerialDispatcher,
        *,
        chunk_seconds: float = 30.0,
        stop_grace_seconds: float = 2.0,
        on_chunk: Callable[[AudioChunk], None] | None = None,
        on_failure: Callable[[RecorderError], None] | None = None,
        on_halted: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.device = device
        self.store = store
        self.dispatcher = dispatcher
        self.chunk_seconds = chunk_seconds
        self.stop_grace_seconds = stop_grace_seconds
        self.on_chunk = on_chunk
        self.on_failure = on_failure
        self.on_halted = on_halted
        self.clock = clock
        self.state = EngineState.IDLE
        self._index = 0
        self._current: AudioChunk | None = None
        self._grace_timer: threading.Timer | None = None
        device.delegate = self

    @property
    def current_chunk(self) -> AudioChunk | None:
        return self._current

    def start(self) -> None:
        """Begin a session with chunk 1. Raises ``ConfigurationFailed`` if it cannot."""
        if self.state is not EngineState.IDLE:
            return
        self.state = EngineState.STARTING
        self._index = 0
        if not self._start_next():
            self.state = EngineState.IDLE
            raise ConfigurationFailed("Unable to start recording.")
        self.state = EngineState.RECORDING

    def stop(self) -> None:
        """Stop rotating. The chunk in flight is finalized and kept."""
        if self.state not in (EngineState.STARTING, EngineState.RECORDING):
            return
        if self._current is None:
            self._halt()
            return
        self.state = EngineState.STOPPING
        LOGGER.info("Stopping after chunk %d", self._current.sequence_index)
        self.device.stop()
        self._grace_timer = self.dispatcher.call_later(
            self.stop_grace_seconds, self._abandon, self._current.storage_location
        )

    def abort(self, error: RecorderError) -> None:
        """Fail the session; the chunk in flight is discarded."""
        if self.state is EngineState.IDLE:
            return
        self._fail(error)

    # -- device callbacks (any thread) -------------------------------------

    def capture_finished(self, target: Path, success: bool) -> None:
        self.dispatcher.post(self._handle_finished, target, success)

    def capture_failed(self, target: Path, error: BaseException) -> None:
        self.dispatcher.post(self._handle_failed, target, error)

    # -- dispatcher thread --------------------------------------------------

    def _start_next(self) -> bool:
        self._index += 1
        created_at = self.clock()
        location = self.store.location_for(created_at, self._index)
        chunk = AudioChunk(
            sequence_index=self._index,
            storage_location=location,
            created_at=created_at,
            duration_target=self.chunk_seconds,
        )
        self._current = chunk
        try:
            started = self.device.record_for(self.chunk_seconds, location)
        except Exception as exc:
            LOGGER.error("Device refused chunk %d: %s", self._index, exc)
            started = False
        if not started:
            self._current = None
            return False
        LOGGER.info("Recording chunk %d -> %s", self._index, location.name)
        return True

    def _is_current(self, target: Path) -> bool:
        if self._current is None or self._current.storage_location != target:
            LOGGER.debug("Ignoring stale completion for %s", target.name)
            return False
        return True

    def _handle_finished(self, target: Path, success: bool) -> None:
        if not self._is_current(target):
            return
        chunk = replace(self._current, finalized=True)
        self._current = None
        if not success:
            self._fail(EncodeFailure())
            return
        self.store.append(chunk)
        CHUNKS_FINALIZED.inc()
        if self.on_chunk is not None:
            self.on_chunk(chunk)
        if self.state is EngineState.RECORDING:
            if not self._start_next():
                self._fail(EncodeFailure("Unable to start recording."))
        elif self.state is EngineState.STOPPING:
            self._halt()

    def _handle_failed(self, target: Path, error: BaseException) -> None:
        if not self._is_current(target):
            return
        self._current = None
        self._fail(EncodeFailure(str(error) or None))

    def _abandon(self, target: Path) -> None:
        if self.state is not EngineState.STOPPING or not self._is_current(target):
            return
        LOGGER.warning("Chunk %s never completed after stop; discarded", target.name)
        self._current = None
        self._halt()

    def _fail(self, error: RecorderError) -> None:
        LOGGER.error("Rotation failed: %s", error)
        self._cancel_grace()
        self._current = None
        self.state = EngineState.IDLE
        self.device.stop()
        if self.on_failure is not None:
            self.on_failure(error)

    def _halt(self) -> None:
        self._cancel_grace()
        self.state = EngineState.IDLE
        LOGGER.info("Rotation halted after %d chunk(s)", self._index)
        if self.on_halted is not None:
            self.on_halted()

    def _cancel_grace(self) -> None:
        if self._grace_timer is not None:
            self._grace_timer.cancel()
            self._grace_timer = None


__all__ = ["ChunkRotationEngine", "EngineState"]
