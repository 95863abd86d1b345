"""Single-threaded coordination context.

Every mutation that observers can see (recorder state, the chunk list) runs
here, one task at a time. Other threads hand work over with :meth:`post`
and never touch that state directly.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable

LOGGER = logging.getLogger("hearhear.dispatcher")


class SerialDispatcher:
    def __init__(self, name: str = "hearhear-main") -> None:
        self.name = name
        self._queue: "queue.Queue[tuple | None]" = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def post(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        if self._closed:
            future.set_exception(RuntimeError(f"dispatcher {self.name} is closed"))
            return future
        self._queue.put((fn, args, kwargs, future))
        return future

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> threading.Timer:
        timer = threading.Timer(delay, self.post, args=(fn, *args))
        timer.daemon = True
        timer.start()
        return timer

    def is_current(self) -> bool:
        return threading.current_thread() is self._thread

    def drain(self, timeout: float | None = 5.0) -> None:
        """Block until every task posted before this call has run."""
        if self.is_current():
            raise RuntimeError("drain() called from the dispatcher thread")
        self.post(lambda: None).result(timeout)

    def close(self, timeout: float = 2.0) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        if not self.is_current():
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            fn, args, kwargs, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args, **kwargs)
            except BaseException as exc:
                LOGGER.exception("Task %s failed on %s", getattr(fn, "__name__", fn), self.name)
                future.set_exception(exc)
            else:
                future.set_result(result)


__all__ = ["SerialDispatcher"]
