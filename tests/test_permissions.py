from mobile.hearhear.services import permissions as perm_mod
from mobile.hearhear.services.permissions import PermissionGate, SpeechAuthorization


def test_speech_authorization_requested_once(permissions):
    permissions.speech = SpeechAuthorization.GRANTED
    gate = PermissionGate(permissions)
    assert not gate.speech_authorized

    assert gate.request_speech_authorization() is SpeechAuthorization.GRANTED
    assert gate.request_speech_authorization() is SpeechAuthorization.GRANTED
    assert permissions.speech_requests == 1
    assert gate.speech_authorized


def test_microphone_passes_through(permissions):
    permissions.microphone = False
    gate = PermissionGate(permissions)
    assert gate.request_microphone() is False
    assert gate.request_microphone() is False
    assert permissions.microphone_requests == 2


def test_desktop_provider_without_sounddevice(monkeypatch):
    monkeypatch.setattr(perm_mod.DesktopPermissionProvider, "_try_import_sounddevice", lambda self: None)
    provider = perm_mod.DesktopPermissionProvider(speech_authorized=True)
    assert provider.request_microphone() is False
    assert provider.request_speech_authorization() is SpeechAuthorization.GRANTED


def test_desktop_provider_checks_input_device(monkeypatch):
    class DummySoundDevice:
        def __init__(self, fail: bool) -> None:
            self.fail = fail
            self.queries = []

        def query_devices(self, device=None, kind=None):
            self.queries.append((device, kind))
            if self.fail:
                raise ValueError("No input device matching")
            return {"name": "mic"}

    ok = DummySoundDevice(fail=False)
    monkeypatch.setattr(perm_mod.DesktopPermissionProvider, "_try_import_sounddevice", lambda self: ok)
    provider = perm_mod.DesktopPermissionProvider()
    assert provider.request_microphone() is True
    assert ok.queries == [(None, "input")]
    assert provider.request_speech_authorization() is SpeechAuthorization.DENIED

    broken = DummySoundDevice(fail=True)
    monkeypatch.setattr(perm_mod.DesktopPermissionProvider, "_try_import_sounddevice", lambda self: broken)
    assert perm_mod.DesktopPermissionProvider().request_microphone() is False
