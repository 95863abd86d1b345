"""Prometheus collectors for capture and classification."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CHUNKS_FINALIZED = Counter(
    "hearhear_chunks_finalized_total",
    "Audio chunks finalized by the rotation engine",
)

CLASSIFICATION_VERDICTS = Counter(
    "hearhear_classification_verdicts_total",
    "Verdicts published per deciding tier",
    labelnames=("tier", "verdict"),
)

CLASSIFICATION_LATENCY = Histogram(
    "hearhear_classification_seconds",
    "Time spent classifying one chunk across all tiers",
)

LEASE_EXPIRATIONS = Counter(
    "hearhear_lease_expirations_total",
    "Background leases invalidated by the host before release",
)

SESSION_FAILURES = Counter(
    "hearhear_session_failures_total",
    "Sessions that ended in an error",
    labelnames=("kind",),
)
