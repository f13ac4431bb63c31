"""Tests for the Prometheus scheduler metrics."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from distcron.metrics.collector import (
    FIRING_ACQUIRED,
    FIRING_CONTENDED,
    MetricsCollector,
    SchedulerMetrics,
)


class TestMetricsCollector:
    def test_uses_given_registry(self) -> None:
        registry = CollectorRegistry()
        collector = MetricsCollector(registry)
        assert collector.registry is registry

    def test_private_registry_by_default(self) -> None:
        assert MetricsCollector().registry is not MetricsCollector().registry


class TestSchedulerMetrics:
    def test_record_firing(self) -> None:
        m = SchedulerMetrics()
        m.record_firing("sync", FIRING_ACQUIRED)
        m.record_firing("sync", FIRING_CONTENDED)
        m.record_firing("sync", FIRING_CONTENDED)
        labels = {"task": "sync", "outcome": FIRING_CONTENDED}
        assert m.value("distcron_firings_total", labels) == 2.0
        labels = {"task": "sync", "outcome": FIRING_ACQUIRED}
        assert m.value("distcron_firings_total", labels) == 1.0

    def test_record_release(self) -> None:
        m = SchedulerMetrics()
        m.record_release("sync", "already_expired")
        labels = {"task": "sync", "outcome": "already_expired"}
        assert m.value("distcron_releases_total", labels) == 1.0

    def test_record_failure(self) -> None:
        m = SchedulerMetrics()
        m.record_failure("sync")
        assert m.value("distcron_task_failures_total", {"task": "sync"}) == 1.0

    def test_track_execution(self) -> None:
        m = SchedulerMetrics()
        with m.track_execution("sync"):
            pass
        assert m.value("distcron_task_duration_seconds_count", {"task": "sync"}) == 1.0
        assert m.value("distcron_task_last_execution_timestamp", {"task": "sync"}) > 0

    def test_track_execution_records_on_error(self) -> None:
        m = SchedulerMetrics()
        with pytest.raises(RuntimeError), m.track_execution("sync"):
            raise RuntimeError
        assert m.value("distcron_task_duration_seconds_count", {"task": "sync"}) == 1.0

    def test_missing_sample_is_zero(self) -> None:
        labels = {"task": "x", "outcome": "y"}
        assert SchedulerMetrics().value("distcron_firings_total", labels) == 0.0
