"""Runs the strategy chain for each finalized chunk on a worker pool."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, Sequence, Tuple

from ..audio.types import AudioChunk, ClassificationVerdict
from ..errors import ClassificationFault
from ..metrics import CLASSIFICATION_LATENCY, CLASSIFICATION_VERDICTS
from ..services.dispatcher import SerialDispatcher
from ..store.chunk_store import ChunkStore
from .base import ClassificationStrategy

LOGGER = logging.getLogger("hearhear.classify")


class ClassificationPipeline:
    """Classifies chunks without ever blocking capture.

    Jobs for different chunks may run in parallel; the tiers of one job run
    in order, and the first definitive verdict wins. Results are delivered
    to the store through the dispatcher, so completion order is whatever the
    workers produce while the store keeps its own ordering.
    """

    def __init__(
        self,
        store: ChunkStore,
        dispatcher: SerialDispatcher,
        strategies: Sequence[ClassificationStrategy],
        *,
        max_workers: int = 2,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.strategies = list(strategies)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="hearhear-classify"
        )
        self._lock = threading.Lock()
        self._inflight: Dict[Path, Future] = {}
        self._closed = False

    def submit(self, chunk: AudioChunk) -> Future | None:
        stored = self.store.get(chunk.storage_location)
        if chunk.classification.is_decided or (stored is not None and stored.classification.is_decided):
            return None
        with self._lock:
            if self._closed:
                LOGGER.warning("Pipeline closed; %s left pending", chunk.storage_location.name)
                return None
            existing = self._inflight.get(chunk.storage_location)
            if existing is not None:
                return existing
            future = self._executor.submit(self._job, chunk)
            self._inflight[chunk.storage_location] = future
        future.add_done_callback(lambda _f, key=chunk.storage_location: self._forget(key))
        return future

    def submit_all(self, chunks: Sequence[AudioChunk]) -> None:
        for chunk in chunks:
            self.submit(chunk)

    def run_chain(self, chunk: AudioChunk) -> Tuple[ClassificationVerdict, str | None]:
        """Run tiers top-down; return the verdict and the tier that decided it."""
        for strategy in self.strategies:
            try:
                if not strategy.available():
                    LOGGER.debug("Tier %s unavailable for %s", strategy.name, chunk.storage_location.name)
                    continue
                verdict = strategy.classify(chunk)
            except Exception as exc:
                fault = ClassificationFault(f"{strategy.name} raised {exc!r}")
                LOGGER.warning("%s on %s", fault, chunk.storage_location.name, exc_info=exc)
                continue
            if verdict.is_definitive:
                return verdict, strategy.name
            LOGGER.debug("Tier %s inconclusive for %s", strategy.name, chunk.storage_location.name)
        return ClassificationVerdict.INCONCLUSIVE, None

    def _job(self, chunk: AudioChunk) -> ClassificationVerdict:
        started = time.perf_counter()
        verdict, tier = self.run_chain(chunk)
        CLASSIFICATION_LATENCY.observe(time.perf_counter() - started)
        CLASSIFICATION_VERDICTS.labels(tier=tier or "none", verdict=verdict.value).inc()
        LOGGER.info(
            "Chunk %d (%s): %s via %s",
            chunk.sequence_index,
            chunk.storage_location.name,
            verdict.value,
            tier or "no tier",
        )
        self.dispatcher.post(self.store.set_classification, chunk.storage_location, verdict)
        return verdict

    def _forget(self, key: Path) -> None:
        with self._lock:
            self._inflight.pop(key, None)

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for every submitted job; True if none are left running."""
        with self._lock:
            futures = list(self._inflight.values())
        if not futures:
            return True
        _done, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait_for_jobs)


__all__ = ["ClassificationPipeline"]
