"""Logging setup and an in-memory buffer of recent lines for status views."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import List

ROOT_LOGGER = "hearhear"


class LogBuffer(logging.Handler):
    """Keeps the most recent formatted records in a bounded deque."""

    def __init__(self, limit: int = 200, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._lines: deque[str] = deque(maxlen=max(1, limit))
        self._guard = threading.Lock()
        self.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.add(line)

    def add(self, message: str) -> None:
        with self._guard:
            self._lines.append(message)

    def get(self) -> List[str]:
        with self._guard:
            return list(self._lines)

    def clear(self) -> None:
        with self._guard:
            self._lines.clear()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_log_buffer(limit: int = 200, logger_name: str = ROOT_LOGGER) -> LogBuffer:
    buffer = LogBuffer(limit)
    logger = logging.getLogger(logger_name)
    logger.addHandler(buffer)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return buffer


__all__ = ["LogBuffer", "configure_logging", "install_log_buffer"]
