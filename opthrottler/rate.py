"""
Average-rate pacing for the replay loop.

The controller does not space operations evenly. It compares how long the
run should have taken so far (``op_index / ops_per_second``) with how long it
actually took and asks the caller to wait out the difference. A run that
falls behind (slow store) is never sped up past the configured rate; it just
stops waiting until it is back on schedule.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable


def wait_before(
    op_index: int,
    ops_per_second: float,
    start_time: float,
    now: float | None = None,
) -> float:
    """
    Seconds to pause before issuing operation number ``op_index`` (0-based).

    The first operation never waits. Returns 0.0 when the run is on or
    behind schedule. ``start_time`` and ``now`` are time.monotonic() readings;
    ``now`` defaults to the current one.
    """
    if now is None:
        now = time.monotonic()
    expected_elapsed = op_index / ops_per_second
    actual_elapsed = now - start_time
    return max(0.0, expected_elapsed - actual_elapsed)


class RateController:
    """
    Tracks the start of a run and computes pauses against an injectable clock.

    Usage:
        rate = RateController(ops_per_second=500)
        rate.start()
        for index, op in enumerate(ops):
            time.sleep(rate.wait_before(index))
            apply(op)
    """

    def __init__(
        self,
        ops_per_second: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not math.isfinite(ops_per_second) or ops_per_second <= 0:
            raise ValueError(f"ops_per_second must be a finite number > 0, got {ops_per_second!r}")
        self.ops_per_second = ops_per_second
        self.clock = clock
        self._start_time: float | None = None

    def start(self) -> None:
        self._start_time = self.clock()

    @property
    def start_time(self) -> float:
        if self._start_time is None:
            raise RuntimeError("RateController.start() has not been called")
        return self._start_time

    def wait_before(self, op_index: int) -> float:
        return wait_before(op_index, self.ops_per_second, self.start_time, self.clock())
