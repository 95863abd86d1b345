"""Pytest configuration helpers."""

from __future__ import annotations

import itertools
import sys
import threading
from pathlib import Path


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

import pytest  # noqa: E402
import soundfile as sf  # noqa: E402

from mobile.hearhear.audio.capture import CaptureDevice  # noqa: E402
from mobile.hearhear.audio.types import ClassificationVerdict  # noqa: E402
from mobile.hearhear.classification.pipeline import ClassificationPipeline  # noqa: E402
from mobile.hearhear.errors import ConfigurationFailed  # noqa: E402
from mobile.hearhear.services.dispatcher import SerialDispatcher  # noqa: E402
from mobile.hearhear.services.lease import BackgroundHost, ExecutionLeaseManager  # noqa: E402
from mobile.hearhear.services.logger import LogBuffer  # noqa: E402
from mobile.hearhear.services.permissions import (  # noqa: E402
    PermissionGate,
    PermissionProvider,
    SpeechAuthorization,
)
from mobile.hearhear.session import SessionController  # noqa: E402
from mobile.hearhear.store.chunk_store import ChunkStore  # noqa: E402


class ScriptedCaptureDevice(CaptureDevice):
    """Capture device driven by the test: ``finish()`` completes the current chunk."""

    def __init__(self) -> None:
        self.delegate = None
        self.accept = True
        self.configure_error: str | None = None
        self.activate_error: Exception | None = None
        self.deactivate_calls = 0
        self.report_on_stop = True
        self.configured = None
        self.active = False
        self.current: Path | None = None
        self.targets: list[Path] = []
        self.durations: list[float] = []
        self.stop_calls = 0
        self._lock = threading.Lock()

    def configure(self, fmt) -> None:
        if self.configure_error:
            raise ConfigurationFailed(self.configure_error)
        self.configured = fmt

    def activate(self) -> None:
        self.active = True
        if self.activate_error is not None:
            raise self.activate_error

    def deactivate(self) -> None:
        self.deactivate_calls += 1
        self.active = False

    def record_for(self, duration: float, target: Path) -> bool:
        with self._lock:
            if not self.accept or self.current is not None:
                return False
            self.current = target
            self.targets.append(target)
            self.durations.append(duration)
        return True

    def stop(self) -> None:
        self.stop_calls += 1
        if self.current is not None and self.report_on_stop:
            self.finish(True)

    def finish(self, success: bool = True, samples=None, sample_rate: int = 16000) -> Path:
        with self._lock:
            target = self.current
            self.current = None
        assert target is not None, "no recording in flight"
        if samples is not None:
            sf.write(str(target), samples, sample_rate)
        self.delegate.capture_finished(target, success)
        return target

    def fail(self, error: BaseException) -> Path:
        with self._lock:
            target = self.current
            self.current = None
        assert target is not None, "no recording in flight"
        self.delegate.capture_failed(target, error)
        return target


class ManualHost(BackgroundHost):
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.active: set[int] = set()
        self.ended: list[int] = []
        self.callbacks: dict[int, object] = {}

    def begin_lease(self, label: str) -> int:
        token = next(self._ids)
        self.active.add(token)
        return token

    def end_lease(self, token) -> None:
        self.active.discard(token)
        self.ended.append(token)

    def on_expiry(self, token, callback) -> None:
        self.callbacks[token] = callback

    def expire(self, token: int) -> None:
        self.callbacks[token]()


class StaticPermissions(PermissionProvider):
    def __init__(self, microphone: bool = True, speech: SpeechAuthorization = SpeechAuthorization.DENIED) -> None:
        self.microphone = microphone
        self.speech = speech
        self.microphone_requests = 0
        self.speech_requests = 0

    def request_microphone(self) -> bool:
        self.microphone_requests += 1
        return self.microphone

    def request_speech_authorization(self) -> SpeechAuthorization:
        self.speech_requests += 1
        return self.speech


class StubStrategy:
    """Returns a fixed verdict, optionally waiting on a per-chunk gate first."""

    def __init__(self, name: str, verdict: ClassificationVerdict, *, available: bool = True) -> None:
        self.name = name
        self.verdict = verdict
        self._available = available
        self.calls: list[Path] = []
        self.gates: dict[str, threading.Event] = {}

    def available(self) -> bool:
        return self._available

    def classify(self, chunk):
        gate = self.gates.get(chunk.storage_location.name)
        if gate is not None:
            assert gate.wait(5), "gate never opened"
        self.calls.append(chunk.storage_location)
        return self.verdict


@pytest.fixture
def dispatcher():
    instance = SerialDispatcher(name="test-main")
    yield instance
    instance.close()


@pytest.fixture
def chunk_dir(tmp_path) -> Path:
    return tmp_path / "Chunks"


@pytest.fixture
def device() -> ScriptedCaptureDevice:
    return ScriptedCaptureDevice()


@pytest.fixture
def host() -> ManualHost:
    return ManualHost()


@pytest.fixture
def permissions() -> StaticPermissions:
    return StaticPermissions()


@pytest.fixture
def stub_strategy():
    return StubStrategy


@pytest.fixture
def make_controller(dispatcher, chunk_dir, device, host, permissions):
    created: list[SessionController] = []

    def _make(strategies=None, *, chunk_seconds: float = 30.0, stop_grace_seconds: float = 2.0, transcript=False):
        store = ChunkStore(chunk_dir, extension=".ogg", chunk_seconds=chunk_seconds)
        if strategies is None:
            strategies = [StubStrategy("energy", ClassificationVerdict.SPEECH_ABSENT)]
        pipeline = ClassificationPipeline(store, dispatcher, strategies, max_workers=2)
        controller = SessionController(
            device=device,
            permissions=PermissionGate(permissions),
            leases=ExecutionLeaseManager(host),
            store=store,
            pipeline=pipeline,
            dispatcher=dispatcher,
            chunk_seconds=chunk_seconds,
            stop_grace_seconds=stop_grace_seconds,
            transcript_configured=transcript,
            log_buffer=LogBuffer(50),
        )
        created.append(controller)
        return controller

    yield _make
    for controller in created:
        controller.pipeline.shutdown(wait_for_jobs=True)
