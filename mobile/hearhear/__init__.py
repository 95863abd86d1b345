"""hearhear: chunked background microphone capture with speech detection."""

__version__ = "0.1.0"
