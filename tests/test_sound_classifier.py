from datetime import datetime, timezone

import numpy as np
import soundfile as sf

from mobile.hearhear.audio.types import AudioChunk, ClassificationVerdict
from mobile.hearhear.classification import sound as sound_mod


def _chunk(path) -> AudioChunk:
    return AudioChunk(
        sequence_index=1,
        storage_location=path,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        duration_target=30.0,
        finalized=True,
    )


class DummyVad:
    def __init__(self, data: dict, pattern) -> None:
        self.data = data
        self.pattern = pattern

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        self.data["frames"] += 1
        self.data["rates"].add(sample_rate)
        self.data["sizes"].add(len(frame))
        return self.pattern(self.data["frames"])


class DummyWebRTC:
    def __init__(self, pattern) -> None:
        self.data = {"frames": 0, "level": None, "rates": set(), "sizes": set()}
        self.pattern = pattern

    def Vad(self, level: int) -> DummyVad:  # noqa: N802
        self.data["level"] = level
        return DummyVad(self.data, self.pattern)


def _write_audio(tmp_path, seconds: float = 2.0, sample_rate: int = 44100):
    path = tmp_path / "chunk.wav"
    sf.write(str(path), np.zeros(int(seconds * sample_rate), dtype=np.float32), sample_rate)
    return path


def test_speech_frames_mean_present(monkeypatch, tmp_path):
    fake = DummyWebRTC(lambda n: True)
    monkeypatch.setattr(sound_mod, "webrtcvad", fake)
    strategy = sound_mod.SoundClassifierStrategy(aggressiveness=5)

    verdict = strategy.classify(_chunk(_write_audio(tmp_path)))

    assert verdict is ClassificationVerdict.SPEECH_PRESENT
    assert fake.data["level"] == 3
    # 44.1 kHz input is resampled for the VAD: 30 ms at 16 kHz is 480 int16 samples.
    assert fake.data["rates"] == {16000}
    assert fake.data["sizes"] == {960}


def test_peak_window_confidence_decides(monkeypatch, tmp_path):
    # Roughly one window in three is mostly speech: the peak still crosses 0.5.
    fake = DummyWebRTC(lambda n: (n // 33) % 3 == 0)
    monkeypatch.setattr(sound_mod, "webrtcvad", fake)
    verdict = sound_mod.SoundClassifierStrategy().classify(_chunk(_write_audio(tmp_path, seconds=3.0)))
    assert verdict is ClassificationVerdict.SPEECH_PRESENT


def test_low_confidence_everywhere_is_absent(monkeypatch, tmp_path):
    fake = DummyWebRTC(lambda n: n % 4 == 0)
    monkeypatch.setattr(sound_mod, "webrtcvad", fake)
    verdict = sound_mod.SoundClassifierStrategy().classify(_chunk(_write_audio(tmp_path)))
    assert verdict is ClassificationVerdict.SPEECH_ABSENT


def test_classifier_error_fails_safe_to_absent(monkeypatch, tmp_path):
    monkeypatch.setattr(sound_mod, "webrtcvad", DummyWebRTC(lambda n: True))

    def broken_factory():
        raise RuntimeError("model failed to load")

    strategy = sound_mod.SoundClassifierStrategy(factory=broken_factory)
    assert strategy.classify(_chunk(_write_audio(tmp_path))) is ClassificationVerdict.SPEECH_ABSENT
    assert strategy.classify(_chunk(tmp_path / "missing.ogg")) is ClassificationVerdict.SPEECH_ABSENT


def test_unavailable_without_webrtcvad_or_when_disabled(monkeypatch):
    monkeypatch.setattr(sound_mod, "webrtcvad", None)
    assert sound_mod.SoundClassifierStrategy().available() is False
    monkeypatch.setattr(sound_mod, "webrtcvad", DummyWebRTC(lambda n: True))
    assert sound_mod.SoundClassifierStrategy(enabled=False).available() is False
    assert sound_mod.SoundClassifierStrategy().available() is True


def test_analyze_emits_speech_and_background_per_window(monkeypatch):
    monkeypatch.setattr(sound_mod, "webrtcvad", DummyWebRTC(lambda n: n % 2 == 0))
    classifier = sound_mod.VadSoundClassifier(window_ms=300)
    results = list(classifier.analyze(np.zeros(16000, dtype=np.float32), 16000))
    speech = [r for r in results if r.label == sound_mod.SPEECH_LABEL]
    background = [r for r in results if r.label == sound_mod.BACKGROUND_LABEL]
    assert len(speech) == len(background) == 4
    assert speech[0].start_s == 0.0
    for s, b in zip(speech, background):
        assert abs(s.confidence + b.confidence - 1.0) < 1e-9
