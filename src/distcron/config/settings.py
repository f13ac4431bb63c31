"""Settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``DISTCRON_``, nested via ``__``)
2. YAML config file (``config_path`` or ``DISTCRON_CONFIG_PATH`` env var)
3. Defaults defined here

All models are frozen: a configuration is shared read-only by every
guarded execution once the manager is built.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class StoreEngine(enum.StrEnum):
    """Supported lock store backends."""

    MEMORY = "memory"
    REDIS = "redis"


class StoreMode(enum.StrEnum):
    """How the Redis URLs are interpreted."""

    STANDALONE = "standalone"
    CLUSTER = "cluster"
    SENTINEL = "sentinel"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class StoreConfig(BaseSettings):
    """Lock store endpoints.

    In ``standalone`` mode every URL is an independent Redlock replica; one
    URL is the common single-Redis deployment.  In ``cluster`` mode the URLs
    are seed nodes of one Redis Cluster, and in ``sentinel`` mode they are
    the sentinels watching ``master_name``.  Either of those counts as a
    single lock store.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISTCRON_STORE__",
        case_sensitive=False,
        frozen=True,
    )

    engine: StoreEngine = Field(
        default=StoreEngine.REDIS,
        description="Lock store backend: memory or redis",
    )
    mode: StoreMode = StoreMode.STANDALONE
    urls: list[str] = Field(default_factory=lambda: ["redis://localhost:6379/0"])
    master_name: str = Field(default="", description="Sentinel master name")
    password: str = ""
    max_connections: int = 10
    socket_timeout: float = 1.0
    operation_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Fixed per-store budget in seconds; None scales it with the lease TTL",
    )

    @field_validator("urls")
    @classmethod
    def _require_urls(cls, v: list[str]) -> list[str]:
        if not v:
            msg = "at least one store URL is required"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _require_master_name(self) -> Self:
        if self.mode is StoreMode.SENTINEL and not self.master_name:
            msg = "sentinel mode requires master_name"
            raise ValueError(msg)
        return self


class LockConfig(BaseSettings):
    """Lease settings shared by every task."""

    model_config = SettingsConfigDict(
        env_prefix="DISTCRON_LOCK__",
        case_sensitive=False,
        frozen=True,
    )

    prefix: str = "distcron:lock:"
    expiry: float = Field(default=60.0, gt=0, description="Lease TTL in seconds")
    drift_factor: float = Field(default=0.01, ge=0, lt=1)
    drift_allowance: float = Field(default=0.002, ge=0)
    timeout_factor: float = Field(
        default=0.05,
        gt=0,
        lt=1,
        description="Per-store budget as a fraction of the lease TTL",
    )


class SchedulerConfig(BaseSettings):
    """Local timer settings."""

    model_config = SettingsConfigDict(
        env_prefix="DISTCRON_SCHEDULER__",
        case_sensitive=False,
        frozen=True,
    )

    timezone: str = "UTC"
    drain_timeout: float | None = Field(
        default=None,
        description="Seconds stop() waits for in-flight firings; None waits for all",
    )


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level distcron configuration.

    Loads settings from environment variables (``DISTCRON_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISTCRON_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    config_path: str = ""

    store: StoreConfig = Field(default_factory=StoreConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
