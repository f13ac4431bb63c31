"""Distributed mutex — Redlock-style leases over one or more lock stores."""

from __future__ import annotations

from distcron.lock.redlock import Lease, Redlock, ReleaseOutcome

__all__ = ["Lease", "Redlock", "ReleaseOutcome"]
