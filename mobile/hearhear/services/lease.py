"""Bounded background-execution leases obtained from the host."""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterator, Optional

from ..metrics import LEASE_EXPIRATIONS

LOGGER = logging.getLogger("hearhear.lease")


class BackgroundHost(ABC):
    """Host API that grants time-bounded permission to keep running."""

    @abstractmethod
    def begin_lease(self, label: str) -> Hashable:
        ...

    @abstractmethod
    def end_lease(self, token: Hashable) -> None:
        ...

    @abstractmethod
    def on_expiry(self, token: Hashable, callback: Callable[[], None]) -> None:
        ...


class TimerBackgroundHost(BackgroundHost):
    """Grants leases that expire after ``max_seconds`` (never when ``None``)."""

    def __init__(self, max_seconds: float | None = None) -> None:
        self.max_seconds = max_seconds
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._timers: Dict[int, threading.Timer] = {}
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._expired: set[int] = set()

    def begin_lease(self, label: str) -> int:
        token = next(self._ids)
        if self.max_seconds is not None:
            timer = threading.Timer(self.max_seconds, self._expire, args=(token,))
            timer.daemon = True
            timer.name = f"lease-{label}-{token}"
            with self._lock:
                self._timers[token] = timer
            timer.start()
        return token

    def end_lease(self, token: Hashable) -> None:
        with self._lock:
            timer = self._timers.pop(token, None)
            self._callbacks.pop(token, None)
            self._expired.discard(token)
        if timer is not None:
            timer.cancel()

    def on_expiry(self, token: Hashable, callback: Callable[[], None]) -> None:
        with self._lock:
            expired = token in self._expired
            self._expired.discard(token)
            if not expired:
                self._callbacks[token] = callback
        if expired:
            callback()

    def _expire(self, token: int) -> None:
        with self._lock:
            live = self._timers.pop(token, None) is not None
            callback = self._callbacks.pop(token, None)
            if callback is None and live:
                # Fired before on_expiry registered; delivered on registration.
                self._expired.add(token)
        if callback is not None:
            callback()


@dataclass(slots=True)
class ExecutionLease:
    token: Hashable
    label: str
    active: bool = True
    expiry_callback: Optional[Callable[[], None]] = None


class ExecutionLeaseManager:
    """Holds at most one lease and makes release idempotent.

    When the host invalidates the lease early, the manager ends it and then
    runs the lease's ``expiry_callback``, which callers use to stop the
    session rather than keep recording unsupervised.
    """

    def __init__(self, host: BackgroundHost, label: str = "BackgroundAudioRecording") -> None:
        self.host = host
        self.label = label
        self._lock = threading.Lock()
        self._lease: ExecutionLease | None = None

    @property
    def current(self) -> ExecutionLease | None:
        return self._lease

    def acquire(self, on_expired: Callable[[], None] | None = None) -> ExecutionLease:
        if self._lease is not None:
            self.release(self._lease)
        token = self.host.begin_lease(self.label)
        lease = ExecutionLease(token=token, label=self.label, expiry_callback=on_expired)
        with self._lock:
            self._lease = lease
        self.host.on_expiry(token, lambda: self._handle_expiry(lease))
        LOGGER.info("Background lease %s acquired", token)
        return lease

    def release(self, lease: ExecutionLease | None = None) -> None:
        with self._lock:
            lease = lease or self._lease
            if lease is None or not lease.active:
                return
            lease.active = False
            if self._lease is lease:
                self._lease = None
        self.host.end_lease(lease.token)
        LOGGER.info("Background lease %s released", lease.token)

    @contextmanager
    def scoped(self, on_expired: Callable[[], None] | None = None) -> Iterator[ExecutionLease]:
        lease = self.acquire(on_expired)
        try:
            yield lease
        finally:
            self.release(lease)

    def _handle_expiry(self, lease: ExecutionLease) -> None:
        with self._lock:
            if not lease.active:
                return
            lease.active = False
            if self._lease is lease:
                self._lease = None
        LEASE_EXPIRATIONS.inc()
        LOGGER.warning("Background lease %s expired by host", lease.token)
        self.host.end_lease(lease.token)
        if lease.expiry_callback is not None:
            lease.expiry_callback()


__all__ = ["BackgroundHost", "ExecutionLease", "ExecutionLeaseManager", "TimerBackgroundHost"]
