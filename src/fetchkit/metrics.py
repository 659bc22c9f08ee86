"""Prometheus instruments for fetch engines."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

ATTEMPT_COUNTER = Counter("fetchkit_attempts_total", "Fetch attempts started", ["trigger"])
OUTCOME_COUNTER = Counter(
    "fetchkit_attempt_outcomes_total",
    "Fetch attempt outcomes",
    ["outcome"],
)
CACHE_COUNTER = Counter("fetchkit_cache_lookups_total", "Cache lookups by result", ["result"])
CACHE_WRITE_FAILURES = Counter("fetchkit_cache_write_failures_total", "Best-effort cache writes that failed")
IN_FLIGHT_GAUGE = Gauge("fetchkit_in_flight_attempts", "Fetch attempts currently running")
NETWORK_LATENCY = Histogram("fetchkit_network_latency_seconds", "Network fetch latency", ["method"])

__all__ = [
    "ATTEMPT_COUNTER",
    "CACHE_COUNTER",
    "CACHE_WRITE_FAILURES",
    "IN_FLIGHT_GAUGE",
    "NETWORK_LATENCY",
    "OUTCOME_COUNTER",
]
