"""Metrics — Prometheus counters for guarded firings."""

from __future__ import annotations

from distcron.metrics.collector import MetricsCollector, SchedulerMetrics

__all__ = ["MetricsCollector", "SchedulerMetrics"]
