from __future__ import annotations

from ..metrics.registry import STORE_WRITE_LATENCY_SECONDS, STORE_WRITE_TOTAL


def observe_store_write(namespace: str, op_type: str, status: str, latency_s: float) -> None:
    STORE_WRITE_TOTAL.labels(namespace=namespace, op_type=op_type, status=status).inc()
    STORE_WRITE_LATENCY_SECONDS.labels(namespace=namespace, op_type=op_type).observe(latency_s)
