"""Session controller: permission gate, lease, rotation and observable state."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, List

from .audio.capture import CaptureDevice
from .audio.rotation import ChunkRotationEngine
from .audio.types import CaptureFormat, ChunkView, RecorderState, SessionSnapshot
from .classification.pipeline import ClassificationPipeline
from .errors import ConfigurationFailed, PermissionDenied, RecorderError
from .metrics import SESSION_FAILURES
from .services.dispatcher import SerialDispatcher
from .services.lease import ExecutionLeaseManager
from .services.logger import LogBuffer
from .services.permissions import PermissionGate
from .store.chunk_store import ChunkStore

LOGGER = logging.getLogger("hearhear.session")

Listener = Callable[[SessionSnapshot], None]


class SessionController:
    """Public start/stop contract for a recording session.

    ``start()`` and ``stop()`` may be called from any thread; the work runs
    on the dispatcher, which is also where listeners are notified.
    """

    def __init__(
        self,
        *,
        device: CaptureDevice,
        permissions: PermissionGate,
        leases: ExecutionLeaseManager,
        store: ChunkStore,
        pipeline: ClassificationPipeline,
        dispatcher: SerialDispatcher,
        capture_format: CaptureFormat | None = None,
        chunk_seconds: float = 30.0,
        stop_grace_seconds: float = 2.0,
        transcript_configured: bool = False,
        log_buffer: LogBuffer | None = None,
    ) -> None:
        self.device = device
        self.permissions = permissions
        self.leases = leases
        self.store = store
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.capture_format = capture_format or CaptureFormat()
        self.transcript_configured = transcript_configured
        self.log_buffer = log_buffer
        self._state = RecorderState.IDLE
        self._last_error: RecorderError | None = None
        self._listeners: List[Listener] = []
        self._idle = threading.Event()
        self._idle.set()
        self.engine = ChunkRotationEngine(
            device,
            store,
            dispatcher,
            chunk_seconds=chunk_seconds,
            stop_grace_seconds=stop_grace_seconds,
            on_chunk=pipeline.submit,
            on_failure=self._on_engine_failure,
            on_halted=self._on_engine_halted,
        )
        store.subscribe(self._publish)
        pipeline.submit_all(store.chunks)

    # -- observable state ---------------------------------------------------

    @property
    def recorder_state(self) -> RecorderState:
        return self._state

    @property
    def last_error(self) -> RecorderError | None:
        return self._last_error

    @property
    def chunks(self) -> tuple[ChunkView, ...]:
        return self.store.views()

    @property
    def is_recording(self) -> bool:
        return self._state is RecorderState.RECORDING

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            recorder_state=self._state,
            last_error=self._last_error,
            chunks=self.store.views(),
            log_lines=tuple(self.log_buffer.get()) if self.log_buffer else (),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- public contract ------------------------------------------------------

    def start(self) -> Future:
        """Request a session; the future resolves with the resulting state."""
        attempt: Future = Future()
        self.dispatcher.post(self._start, attempt)
        return attempt

    def stop(self) -> Future:
        return self.dispatcher.post(self._stop)

    def settle(self, timeout: float | None = 5.0) -> None:
        """Wait for queued handoffs, the classification jobs they start, and their results."""
        self.dispatcher.drain(timeout)
        self.pipeline.drain(timeout)
        self.dispatcher.drain(timeout)

    def wait_idle(self, timeout: float | None = None) -> bool:
        return self._idle.wait(timeout)

    def close(self, timeout: float = 5.0) -> None:
        if not self.dispatcher.is_current():
            self.stop().result(timeout)
        self.pipeline.shutdown(wait_for_jobs=False)
        self.dispatcher.close()

    # -- dispatcher thread ----------------------------------------------------

    def _start(self, attempt: Future) -> None:
        if self._state in (
            RecorderState.RECORDING,
            RecorderState.AWAITING_PERMISSION,
            RecorderState.STOPPING,
        ):
            LOGGER.debug("start() ignored while %s", self._state.value)
            attempt.set_result(self._state)
            return
        self._last_error = None
        self._set_state(RecorderState.AWAITING_PERMISSION)
        threading.Thread(
            target=self._request_permissions,
            args=(attempt,),
            name="hearhear-permissions",
            daemon=True,
        ).start()

    def _request_permissions(self, attempt: Future) -> None:
        try:
            granted = self.permissions.request_microphone()
            if granted and self.transcript_configured:
                self.permissions.request_speech_authorization()
        except Exception:
            LOGGER.exception("Permission request failed; treating as denied")
            granted = False
        self.dispatcher.post(self._on_permission, granted, attempt)

    def _on_permission(self, granted: bool, attempt: Future) -> None:
        if self._state is RecorderState.AWAITING_PERMISSION:
            if granted:
                self._begin_recording()
            else:
                self._report_failure(PermissionDenied())
        attempt.set_result(self._state)

    def _begin_recording(self) -> None:
        try:
            self.device.configure(self.capture_format)
        except ConfigurationFailed as exc:
            self._report_failure(exc)
            return
        except Exception as exc:
            self._report_failure(ConfigurationFailed(str(exc)))
            return
        try:
            self.device.activate()
        except ConfigurationFailed as exc:
            self.device.deactivate()
            self._report_failure(exc)
            return
        except Exception as exc:
            self.device.deactivate()
            self._report_failure(ConfigurationFailed(str(exc)))
            return
        try:
            self.engine.start()
        except ConfigurationFailed as exc:
            self.device.deactivate()
            self._report_failure(exc)
            return
        self._set_state(RecorderState.RECORDING)
        try:
            self.leases.acquire(on_expired=self._on_lease_expired)
        except Exception as exc:
            LOGGER.error("Background lease unavailable: %s", exc)
            self.engine.abort(ConfigurationFailed(f"background lease unavailable: {exc}"))

    def _stop(self) -> None:
        if self._state is not RecorderState.RECORDING:
            LOGGER.debug("stop() ignored while %s", self._state.value)
            return
        self._set_state(RecorderState.STOPPING)
        self.engine.stop()
        self._teardown()

    def _on_lease_expired(self) -> None:
        LOGGER.warning("Background time expired; stopping session")
        self.stop()

    def _on_engine_halted(self) -> None:
        if self._state is RecorderState.STOPPING:
            self._set_state(RecorderState.IDLE)

    def _on_engine_failure(self, error: RecorderError) -> None:
        self._teardown()
        self._report_failure(error)

    def _teardown(self) -> None:
        self.leases.release()
        self.device.deactivate()

    def _report_failure(self, error: RecorderError) -> None:
        SESSION_FAILURES.labels(kind=type(error).__name__).inc()
        LOGGER.error("Session error: %s", error)
        self._last_error = error
        self._set_state(RecorderState.FAILED)
        self._set_state(RecorderState.IDLE)

    def _set_state(self, state: RecorderState) -> None:
        if state is self._state:
            return
        LOGGER.info("Recorder %s -> %s", self._state.value, state.value)
        self._state = state
        if state is RecorderState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        self._publish()

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Session listener %r failed", listener)


__all__ = ["SessionController"]
