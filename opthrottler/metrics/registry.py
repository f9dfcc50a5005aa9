"""
Prometheus metric objects shared across opthrottler.

Metrics are registered once at import time on the default registry.
Recording goes through the observe_* helpers in each subpackage.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

STORE_WRITE_TOTAL = Counter(
    "opthrottler_store_write_total",
    "Store mutations issued while replaying the oplog",
    ["namespace", "op_type", "status"],
)

STORE_WRITE_LATENCY_SECONDS = Histogram(
    "opthrottler_store_write_latency_seconds",
    "Latency of a single store mutation",
    ["namespace", "op_type"],
)

OPS_APPLIED_TOTAL = Counter(
    "opthrottler_ops_applied_total",
    "Operations successfully applied to the store",
    ["op_type"],
)

ENTRIES_DROPPED_TOTAL = Counter(
    "opthrottler_entries_dropped_total",
    "Oplog entries skipped because they target system namespaces",
)

CONVERSION_ERRORS_TOTAL = Counter(
    "opthrottler_conversion_errors_total",
    "Oplog entries rejected during conversion",
    ["error"],
)

THROTTLE_WAIT_SECONDS = Histogram(
    "opthrottler_throttle_wait_seconds",
    "Time spent pausing to stay under the configured rate",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
