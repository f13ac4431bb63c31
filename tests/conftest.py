"""Shared test fixtures for the distcron test suite."""

from __future__ import annotations

import pytest

from distcron.config.settings import (
    AppConfig,
    LockConfig,
    SchedulerConfig,
    StoreConfig,
    StoreEngine,
)
from distcron.lock.redlock import Redlock
from distcron.metrics.collector import SchedulerMetrics
from distcron.store.memory import MemoryLockStore


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig backed by the in-memory store with short leases."""
    return AppConfig(
        store=StoreConfig(engine=StoreEngine.MEMORY, operation_timeout=0.5),
        lock=LockConfig(prefix="app:lock:", expiry=5.0),
        scheduler=SchedulerConfig(drain_timeout=None),
    )


@pytest.fixture
def shared_store() -> MemoryLockStore:
    """One lock store shared by every simulated node in a test."""
    return MemoryLockStore()


@pytest.fixture
def mutex(shared_store: MemoryLockStore) -> Redlock:
    return Redlock([shared_store], store_timeout=0.5)


@pytest.fixture
def metrics() -> SchedulerMetrics:
    return SchedulerMetrics()
