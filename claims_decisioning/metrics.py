"""Run-level metrics for the claims decisioning pipeline.

In-memory counters, histograms and gauges shared by all orchestrator runs in
the process. Names used by the pipeline:

    claims_total{status}              processing / completed / failed / cancelled
    decisions_total{decision}         auto_approve / escalate_human / siu_review / draft_hold
    stage_duration_seconds{stage}     wall-clock per stage invocation
    active_runs                       gauge of in-flight orchestrations

Usage:
    from claims_decisioning.metrics import METRICS

    METRICS.inc("decisions_total", labels={"decision": "auto_approve"})
    with METRICS.timer("stage_duration_seconds", labels={"stage": "valuation"}):
        ...
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any

import numpy as np


class InMemoryMetrics:
    """Thread-safe in-memory metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = defaultdict(float)
        self._histograms: dict[str, list[float]] = defaultdict(list)
        self._gauges: dict[str, float] = defaultdict(float)

    # -- Counter ----------------------------------------------------------

    def inc(self, name: str, amount: float = 1.0, labels: dict[str, str] | None = None) -> None:
        key = _label_key(name, labels)
        with self._lock:
            self._counters[key] += amount

    def count(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a counter (0.0 if never incremented)."""
        with self._lock:
            return self._counters.get(_label_key(name, labels), 0.0)

    # -- Histogram --------------------------------------------------------

    def observe(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(name, labels)
        with self._lock:
            self._histograms[key].append(value)

    # -- Gauge ------------------------------------------------------------

    def inc_gauge(self, name: str, amount: float = 1.0, labels: dict[str, str] | None = None) -> None:
        key = _label_key(name, labels)
        with self._lock:
            self._gauges[key] += amount

    def dec_gauge(self, name: str, amount: float = 1.0, labels: dict[str, str] | None = None) -> None:
        self.inc_gauge(name, -amount, labels)

    def gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges.get(_label_key(name, labels), 0.0)

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None):
        """Record elapsed seconds of the ``with`` block to a histogram."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - start, labels)

    # -- Snapshot ---------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of all metrics."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "histograms": {k: _histogram_summary(v) for k, v in self._histograms.items()},
            }

    def reset(self) -> None:
        """Clear all metrics (used by tests)."""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
            self._gauges.clear()


def _label_key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    parts = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{parts}}}"


def _histogram_summary(values: list[float]) -> dict[str, float]:
    if not values:
        return {"count": 0, "sum": 0.0, "mean": 0.0, "p50": 0.0, "p95": 0.0}
    arr = np.asarray(values, dtype=float)
    return {
        "count": int(arr.size),
        "sum": float(arr.sum()),
        "mean": float(arr.mean()),
        "p50": float(np.percentile(arr, 50)),
        "p95": float(np.percentile(arr, 95)),
    }


METRICS = InMemoryMetrics()
