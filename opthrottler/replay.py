from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO

from .config import ReplayConfig
from .db.applier import Applier
from .db.store import DocumentStore
from .oplog.convert import convert_entry
from .oplog.metrics import observe_op_applied, observe_throttle_wait
from .oplog.reader import iter_entries
from .rate import RateController

logger = logging.getLogger(__name__)


class ReplayState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ReplayResult:
    state: ReplayState
    applied: int
    dropped: int
    elapsed_s: float

    @property
    def completed(self) -> bool:
        return self.state == ReplayState.COMPLETED


class ReplayDriver:
    """
    Sequential, rate-limited replay of an oplog against a DocumentStore.

    Entries are converted and applied strictly one at a time, in log order.
    Updates depend on the cumulative effect of earlier entries for the same
    document, so there are no workers and nothing is reordered or batched.

    Failure policy is fail-fast: the first conversion or store error moves
    the driver to ABORTED and is re-raised. Nothing is retried or skipped.
    The remedy is to fix the input or environment and replay the whole log
    again, which is safe because application is idempotent.

    Dropped entries (system namespaces) do not count towards the rate: only
    applied operations advance the schedule.

    Usage:
        driver = ReplayDriver(store, ReplayConfig(ops_per_second=500))
        result = driver.run(iter_entries(stream))

    stop() may be called from another thread (e.g. a signal handler). It
    interrupts the pause between operations and no further entries are read;
    the run then ends ABORTED without an error.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: ReplayConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ReplayConfig()
        self.clock = clock
        self._applier = Applier(store)
        self._rate = RateController(self.config.ops_per_second, clock=clock)
        self._stopping = threading.Event()
        self._state = ReplayState.IDLE
        self._applied = 0
        self._dropped = 0

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def applied(self) -> int:
        """Number of operations applied so far. Only ever increases."""
        return self._applied

    @property
    def dropped(self) -> int:
        return self._dropped

    def stop(self) -> None:
        """Signal the run to stop before reading the next entry."""
        self._stopping.set()

    def run(self, entries: Iterable[Mapping[str, Any]]) -> ReplayResult:
        """
        Replay entries until they are exhausted, stop() is called, or an
        error occurs.

        Returns:
            ReplayResult with state COMPLETED, or ABORTED if stopped

        Raises:
            ConversionError: If an entry cannot be converted
            StoreError: If the store rejects an operation
            Any exception raised while reading entries is propagated
        """
        if self._state != ReplayState.IDLE:
            raise RuntimeError(f"ReplayDriver has already run (state={self._state.value})")

        self._state = ReplayState.RUNNING
        self._rate.start()
        logger.info("Starting oplog replay at %s ops/s", self.config.ops_per_second)

        index = -1
        iterator = iter(entries)
        try:
            while not self._stopping.is_set():
                try:
                    entry = next(iterator)
                except StopIteration:
                    self._state = ReplayState.COMPLETED
                    break
                index += 1

                op = convert_entry(entry)
                if op is None:
                    self._dropped += 1
                    continue

                wait_s = self._rate.wait_before(self._applied)
                if wait_s > 0:
                    observe_throttle_wait(wait_s)
                    if self._stopping.wait(wait_s):
                        break

                self._applier.apply(op)
                self._applied += 1
                observe_op_applied(op.kind.value)

                if self._applied % self.config.progress_every == 0:
                    logger.info("Applied %d operations", self._applied)

        except Exception as exc:
            logger.error(
                "Replay aborted at entry %d after %d applied operations: %s",
                index,
                self._applied,
                exc,
            )
            raise
        finally:
            if self._state == ReplayState.RUNNING:
                self._state = ReplayState.ABORTED

        result = ReplayResult(
            state=self._state,
            applied=self._applied,
            dropped=self._dropped,
            elapsed_s=self.clock() - self._rate.start_time,
        )
        logger.info(
            "Replay %s: %d operations applied, %d entries dropped in %.2fs",
            result.state.value,
            result.applied,
            result.dropped,
            result.elapsed_s,
        )
        return result


def replay_stream(
    stream: BinaryIO,
    store: DocumentStore,
    config: ReplayConfig | None = None,
) -> ReplayResult:
    """Read, convert and apply every entry of an oplog stream."""
    config = config or ReplayConfig()
    driver = ReplayDriver(store, config)
    return driver.run(iter_entries(stream, config.input_format))
