"""Local cron timer — fires coroutines on six-field cron schedules."""

from __future__ import annotations

from distcron.scheduler.cron import CronJob, CronScheduler, parse_schedule

__all__ = ["CronJob", "CronScheduler", "parse_schedule"]
