"""Record from the default microphone until interrupted."""

from __future__ import annotations

import argparse
import signal
import threading

from mobile.hearhear.app import create_session
from mobile.hearhear.audio.types import SessionSnapshot
from mobile.hearhear.config import CONFIG
from mobile.hearhear.services.logger import configure_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--data-dir", help="Directory holding the Chunks/ folder")
    parser.add_argument("--chunk-seconds", type=float, help="Nominal chunk length")
    parser.add_argument("--lease-seconds", type=float, help="Stop after this much background time")
    parser.add_argument("--transcript", action="store_true", help="Enable the speech-to-text tier")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.chunk_seconds:
        overrides["chunk_seconds"] = args.chunk_seconds
    if args.lease_seconds:
        overrides["lease_max_seconds"] = args.lease_seconds
    if args.transcript:
        overrides["transcript_enabled"] = True
        overrides["speech_recognition_authorized"] = True
    settings = CONFIG.model_copy(update=overrides)
    configure_logging(args.log_level or settings.log_level)

    session = create_session(settings)
    done = threading.Event()
    seen: dict[str, str] = {}

    def _on_change(snapshot: SessionSnapshot) -> None:
        for chunk in snapshot.chunks:
            if seen.get(chunk.location) != chunk.verdict.value:
                seen[chunk.location] = chunk.verdict.value
                print(f"[hearhear] chunk {chunk.sequence}: {chunk.verdict.value}  {chunk.location}")
        if snapshot.last_error is not None and not snapshot.is_recording:
            print(f"[hearhear] {snapshot.last_error}")
            done.set()

    session.subscribe(_on_change)

    def _stop(*_args: object) -> None:
        done.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    state = session.start().result()
    print(f"[hearhear] {state.value}; chunks -> {settings.chunks_dir}")
    print("Press Ctrl+C to stop.")
    try:
        while session.is_recording and not done.is_set():
            done.wait(0.25)
    finally:
        session.stop().result(timeout=5)
        session.wait_idle(timeout=settings.stop_grace_seconds + 5)
        session.settle(timeout=settings.transcript_timeout + 5)
        session.close()


if __name__ == "__main__":
    main()
