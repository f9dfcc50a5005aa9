from __future__ import annotations

from ..metrics.registry import (
    CONVERSION_ERRORS_TOTAL,
    ENTRIES_DROPPED_TOTAL,
    OPS_APPLIED_TOTAL,
    THROTTLE_WAIT_SECONDS,
)


def observe_entry_dropped() -> None:
    ENTRIES_DROPPED_TOTAL.inc()


def observe_conversion_error(error: str) -> None:
    CONVERSION_ERRORS_TOTAL.labels(error=error).inc()


def observe_op_applied(op_type: str) -> None:
    OPS_APPLIED_TOTAL.labels(op_type=op_type).inc()


def observe_throttle_wait(wait_s: float) -> None:
    """Record a pause. Zero-length waits are not recorded."""
    if wait_s > 0:
        THROTTLE_WAIT_SECONDS.observe(wait_s)
