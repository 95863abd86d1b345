"""Ordered registry of finalized audio chunks on durable storage."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from ..audio.types import AudioChunk, ChunkView, ClassificationVerdict

LOGGER = logging.getLogger("hearhear.store")

STAMP_FORMAT = "%Y%m%dT%H%M%S"
_NAME_PATTERN = re.compile(r"^chunk_(?P<stamp>\d{8}T\d{6})(?:\.(?P<millis>\d{3}))?Z_(?P<index>\d+)$")

Listener = Callable[[], None]


def chunk_filename(created_at: datetime, sequence_index: int, extension: str) -> str:
    created_at = created_at.astimezone(timezone.utc)
    stamp = f"{created_at.strftime(STAMP_FORMAT)}.{created_at.microsecond // 1000:03d}Z"
    return f"chunk_{stamp}_{sequence_index}{extension}"


def parse_chunk_filename(path: Path) -> Optional[Tuple[datetime, int]]:
    match = _NAME_PATTERN.match(path.stem)
    if not match:
        return None
    created_at = datetime.strptime(match["stamp"], STAMP_FORMAT).replace(tzinfo=timezone.utc)
    if match["millis"]:
        created_at = created_at.replace(microsecond=int(match["millis"]) * 1000)
    return created_at, int(match["index"])


class ChunkStore:
    """Single source of truth for which chunks exist.

    Entries keep the order in which they were loaded or appended. Mutation is
    expected to happen on one coordination thread; readers get tuple
    snapshots, so concurrent reads never observe a half-applied change.
    """

    def __init__(self, directory: Path, *, extension: str = ".ogg", chunk_seconds: float = 30.0) -> None:
        self.directory = Path(directory)
        self.extension = extension.lower()
        self.chunk_seconds = chunk_seconds
        self.directory.mkdir(parents=True, exist_ok=True)
        self._chunks: Tuple[AudioChunk, ...] = ()
        self._listeners: List[Listener] = []
        self.load_existing()

    def load_existing(self) -> List[AudioChunk]:
        """Pick up artifacts already on disk, oldest first."""
        known = {chunk.storage_location for chunk in self._chunks}
        found: list[tuple[float, str, Path]] = []
        for path in self.directory.iterdir():
            if path.name.startswith(".") or path.suffix.lower() != self.extension:
                continue
            if not path.is_file() or path in known:
                continue
            try:
                mtime = path.stat().st_mtime
            except OSError as exc:
                LOGGER.warning("Skipping unreadable chunk %s: %s", path.name, exc)
                continue
            found.append((mtime, path.name, path))
        found.sort()
        loaded = [self._restore(path, mtime) for mtime, _, path in found]
        if loaded:
            self._chunks = self._chunks + tuple(loaded)
            LOGGER.info("Loaded %d existing chunk(s) from %s", len(loaded), self.directory)
            self._notify()
        return loaded

    def _restore(self, path: Path, mtime: float) -> AudioChunk:
        parsed = parse_chunk_filename(path)
        if parsed is None:
            created_at = datetime.fromtimestamp(mtime, tz=timezone.utc)
            sequence_index = 0
        else:
            created_at, sequence_index = parsed
        return AudioChunk(
            sequence_index=sequence_index,
            storage_location=path,
            created_at=created_at,
            duration_target=self.chunk_seconds,
            finalized=True,
        )

    def location_for(self, created_at: datetime, sequence_index: int) -> Path:
        return self.directory / chunk_filename(created_at, sequence_index, self.extension)

    def append(self, chunk: AudioChunk) -> bool:
        if not chunk.finalized:
            raise ValueError(f"chunk {chunk.storage_location} is not finalized")
        if self.get(chunk.storage_location) is not None:
            LOGGER.warning("Chunk %s already stored; append ignored", chunk.storage_location.name)
            return False
        self._chunks = self._chunks + (chunk,)
        LOGGER.info("Chunk %d stored (%s)", chunk.sequence_index, chunk.storage_location.name)
        self._notify()
        return True

    def set_classification(self, location: Path, verdict: ClassificationVerdict) -> bool:
        for position, chunk in enumerate(self._chunks):
            if chunk.storage_location != location:
                continue
            if chunk.classification.is_decided:
                LOGGER.warning(
                    "Chunk %s already classified as %s; %s ignored",
                    location.name,
                    chunk.classification.value,
                    verdict.value,
                )
                return False
            updated = replace(chunk, classification=verdict)
            self._chunks = self._chunks[:position] + (updated,) + self._chunks[position + 1 :]
            self._notify()
            return True
        LOGGER.warning("No stored chunk at %s; classification %s dropped", location, verdict.value)
        return False

    def get(self, location: Path) -> AudioChunk | None:
        for chunk in self._chunks:
            if chunk.storage_location == location:
                return chunk
        return None

    @property
    def chunks(self) -> Tuple[AudioChunk, ...]:
        return self._chunks

    def views(self) -> Tuple[ChunkView, ...]:
        return tuple(
            ChunkView(
                sequence=chunk.sequence_index,
                location=str(chunk.storage_location),
                verdict=chunk.classification,
            )
            for chunk in self._chunks
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def __iter__(self) -> Iterator[AudioChunk]:
        return iter(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)


__all__ = ["ChunkStore", "chunk_filename", "parse_chunk_filename"]
