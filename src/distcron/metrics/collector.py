"""Metrics collector — Prometheus counters, gauges, histograms.

- ``distcron_firings_total``            counter-vec (task, outcome)
- ``distcron_releases_total``           counter-vec (task, outcome)
- ``distcron_task_failures_total``      counter-vec (task)
- ``distcron_task_duration_seconds``    histogram-vec (task)
- ``distcron_task_last_execution_timestamp`` gauge-vec (task)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "distcron"

# Acquisition outcomes recorded per firing
FIRING_ACQUIRED = "acquired"
FIRING_CONTENDED = "contended"
FIRING_UNAVAILABLE = "unavailable"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`SchedulerMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class SchedulerMetrics:
    """Per-task metrics for guarded executions."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._firings = self._collector.counter(
            f"{_PREFIX}_firings",
            "Firings by lease acquisition outcome",
            ("task", "outcome"),
        )
        self._releases = self._collector.counter(
            f"{_PREFIX}_releases",
            "Lease releases by outcome",
            ("task", "outcome"),
        )
        self._failures = self._collector.counter(
            f"{_PREFIX}_task_failures",
            "Task bodies that raised",
            ("task",),
        )
        self._duration = self._collector.histogram(
            f"{_PREFIX}_task_duration_seconds",
            "Duration of task executions under a lease",
            ("task",),
        )
        self._last = self._collector.gauge(
            f"{_PREFIX}_task_last_execution_timestamp",
            "Timestamp of the last execution on this node",
            ("task",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_firing(self, task: str, outcome: str) -> None:
        """Count one firing with its acquisition *outcome*."""
        self._firings.labels(task=task, outcome=outcome).inc()

    def record_release(self, task: str, outcome: str) -> None:
        """Count one release with its ``ReleaseOutcome`` value."""
        self._releases.labels(task=task, outcome=outcome).inc()

    def record_failure(self, task: str) -> None:
        self._failures.labels(task=task).inc()

    @contextmanager
    def track_execution(self, task: str) -> Iterator[None]:
        """Track the duration of a task body and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._duration.labels(task=task).observe(time.monotonic() - start)
            self._last.labels(task=task).set(time.time())

    def value(self, name: str, labels: dict[str, str]) -> float:
        """Read a sample back from the registry (0.0 when absent)."""
        return self.registry.get_sample_value(name, labels) or 0.0
