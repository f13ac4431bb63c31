"""Tests for the croniter-driven scheduler."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from distcron.errors.manager_errors import ScheduleParseError
from distcron.scheduler.cron import CronJob, CronScheduler, parse_schedule


async def _noop() -> None:
    pass


class TestParseSchedule:
    @pytest.mark.parametrize(
        "expression",
        [
            "* * * * * *",
            "*/10 * * * * *",
            "0 0 12 * * MON-FRI",
            "30 15 3 1 * *",
        ],
    )
    def test_valid(self, expression: str) -> None:
        assert parse_schedule(expression) == expression

    def test_quartz_question_mark(self) -> None:
        assert parse_schedule("*/10 * * * * ? ") == "*/10 * * * * *"

    @pytest.mark.parametrize("expression", ["", "* * * * *", "* * * * * * *"])
    def test_wrong_field_count(self, expression: str) -> None:
        with pytest.raises(ScheduleParseError, match="expected 6 fields"):
            parse_schedule(expression)

    @pytest.mark.parametrize("expression", ["61 * * * * *", "* * 25 * * *", "* * * * * FOO"])
    def test_bad_field(self, expression: str) -> None:
        with pytest.raises(ScheduleParseError):
            parse_schedule(expression)

    def test_error_names_task(self) -> None:
        with pytest.raises(ScheduleParseError) as exc_info:
            parse_schedule("nope", task_name="sync")
        assert exc_info.value.task_name == "sync"


class TestCronJob:
    def test_next_after(self) -> None:
        job = CronJob(id=1, name="j", expression="*/10 * * * * *", func=_noop)
        base = datetime(2024, 1, 1, 12, 0, 3, tzinfo=UTC)
        assert job.next_after(base) == datetime(2024, 1, 1, 12, 0, 10, tzinfo=UTC)

    def test_next_after_never_repeats_last_fire(self) -> None:
        job = CronJob(id=1, name="j", expression="*/10 * * * * *", func=_noop)
        job.last_fire = datetime(2024, 1, 1, 12, 0, 10, tzinfo=UTC)
        # Woken a moment early: the same due time must not fire twice
        early = datetime(2024, 1, 1, 12, 0, 9, 999000, tzinfo=UTC)
        assert job.next_after(early) == datetime(2024, 1, 1, 12, 0, 20, tzinfo=UTC)


class TestCronScheduler:
    def test_add_job_validates(self) -> None:
        scheduler = CronScheduler()
        with pytest.raises(ScheduleParseError):
            scheduler.add_job("bad", "not a cron", _noop)
        assert scheduler.jobs == []

    def test_add_job_ids(self) -> None:
        scheduler = CronScheduler()
        first = scheduler.add_job("a", "* * * * * *", _noop)
        second = scheduler.add_job("b", "* * * * * *", _noop)
        assert second == first + 1
        assert [j.name for j in scheduler.jobs] == ["a", "b"]

    def test_timezone(self) -> None:
        scheduler = CronScheduler(timezone="Europe/Berlin")
        assert str(scheduler.now().tzinfo) == "Europe/Berlin"

    async def test_fires_every_second(self) -> None:
        fired: list[float] = []

        async def tick() -> None:
            fired.append(asyncio.get_running_loop().time())

        scheduler = CronScheduler()
        scheduler.add_job("tick", "* * * * * *", tick)
        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(2.5)
        await scheduler.stop()
        assert not scheduler.is_running
        assert 1 <= len(fired) <= 3

    async def test_job_added_while_running(self) -> None:
        fired = asyncio.Event()

        async def tick() -> None:
            fired.set()

        scheduler = CronScheduler()
        scheduler.start()
        scheduler.add_job("late", "* * * * * *", tick)
        await asyncio.wait_for(fired.wait(), timeout=2.5)
        await scheduler.stop()

    async def test_no_firing_after_stop(self) -> None:
        count = 0

        async def tick() -> None:
            nonlocal count
            count += 1

        scheduler = CronScheduler()
        scheduler.add_job("tick", "* * * * * *", tick)
        scheduler.start()
        await scheduler.stop()
        await asyncio.sleep(1.2)
        assert count == 0

    async def test_slow_firing_does_not_block_others(self) -> None:
        release = asyncio.Event()
        fast_done = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        async def fast() -> None:
            fast_done.set()

        scheduler = CronScheduler()
        slow_job = CronJob(id=1, name="slow", expression="* * * * * *", func=slow)
        fast_job = CronJob(id=2, name="fast", expression="* * * * * *", func=fast)
        scheduler.dispatch(slow_job)
        scheduler.dispatch(fast_job)
        await asyncio.wait_for(fast_done.wait(), timeout=1)
        assert scheduler.in_flight == 1
        release.set()
        assert await scheduler.drain(timeout=1)
        assert scheduler.in_flight == 0

    async def test_drain_timeout_leaves_firing_running(self) -> None:
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        scheduler = CronScheduler()
        task = scheduler.dispatch(CronJob(id=1, name="slow", expression="* * * * * *", func=slow))
        assert not await scheduler.drain(timeout=0.05)
        assert not task.done()
        release.set()
        await task

    async def test_drain_with_nothing_in_flight(self) -> None:
        assert await CronScheduler().drain(timeout=0)

    async def test_failing_job_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        async def boom() -> None:
            msg = "boom"
            raise RuntimeError(msg)

        scheduler = CronScheduler()
        await scheduler.dispatch(CronJob(id=1, name="boom", expression="* * * * * *", func=boom))
        assert "Cron job 'boom' failed" in caplog.text
