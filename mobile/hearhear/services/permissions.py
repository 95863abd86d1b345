"""Microphone and speech-recognition permission requests."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum

LOGGER = logging.getLogger("hearhear.permissions")


class SpeechAuthorization(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    NOT_DETERMINED = "not_determined"


class PermissionProvider(ABC):
    """Host permission prompts. Both calls may block awaiting the user."""

    @abstractmethod
    def request_microphone(self) -> bool:
        ...

    @abstractmethod
    def request_speech_authorization(self) -> SpeechAuthorization:
        ...


class DesktopPermissionProvider(PermissionProvider):
    """Treats an available input device as microphone consent.

    Speech recognition consent is a configuration choice on desktop hosts.
    """

    def __init__(self, *, speech_authorized: bool = False, device: int | str | None = None) -> None:
        self.speech_authorized = speech_authorized
        self.device = device
        self._sd = self._try_import_sounddevice()

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception:
            return None

    def request_microphone(self) -> bool:
        if self._sd is None:
            LOGGER.warning("sounddevice unavailable; no microphone to grant")
            return False
        try:
            self._sd.query_devices(self.device, kind="input")
        except Exception as exc:
            LOGGER.warning("No usable input device: %s", exc)
            return False
        return True

    def request_speech_authorization(self) -> SpeechAuthorization:
        if self.speech_authorized:
            return SpeechAuthorization.GRANTED
        return SpeechAuthorization.DENIED


class PermissionGate:
    """Wraps a provider so speech authorization is requested at most once."""

    def __init__(self, provider: PermissionProvider) -> None:
        self.provider = provider
        self._lock = threading.Lock()
        self._speech: SpeechAuthorization = SpeechAuthorization.NOT_DETERMINED
        self._speech_requested = False

    def request_microphone(self) -> bool:
        allowed = bool(self.provider.request_microphone())
        LOGGER.info("Microphone permission %s", "granted" if allowed else "denied")
        return allowed

    def request_speech_authorization(self) -> SpeechAuthorization:
        with self._lock:
            if self._speech_requested:
                return self._speech
            self._speech_requested = True
        status = self.provider.request_speech_authorization()
        with self._lock:
            self._speech = status
        LOGGER.info("Speech recognition authorization: %s", status.value)
        return status

    @property
    def speech_authorized(self) -> bool:
        return self._speech is SpeechAuthorization.GRANTED


__all__ = [
    "DesktopPermissionProvider",
    "PermissionGate",
    "PermissionProvider",
    "SpeechAuthorization",
]
