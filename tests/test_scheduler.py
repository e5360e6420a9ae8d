"""Tests for the pipeline scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from memex.config import MemexConfig, ScheduleConfig
from memex.scheduler import Scheduler


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _memex(error: dict | None = None) -> MagicMock:
    memex = MagicMock()
    memex.consolidate = AsyncMock(return_value=MagicMock(error=error))
    memex.defrag = AsyncMock(return_value=MagicMock(error=error))
    return memex


def _config() -> MemexConfig:
    return MemexConfig(schedule=ScheduleConfig(consolidate_interval_hours=1, defrag_interval_hours=4))


class TestScheduler:
    @pytest.mark.asyncio
    async def test_runs_jobs_when_due(self):
        clock = FakeClock()
        memex = _memex()
        scheduler = Scheduler(memex, _config(), clock=clock)

        assert await scheduler.run_due() == ["consolidate", "defrag"]

        clock.now = 1800
        assert await scheduler.run_due() == []

        clock.now = 3600
        assert await scheduler.run_due() == ["consolidate"]

        clock.now = 4 * 3600
        assert await scheduler.run_due() == ["consolidate", "defrag"]
        assert memex.consolidate.await_count == 3
        assert memex.defrag.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_others(self):
        memex = _memex()
        memex.consolidate = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = Scheduler(memex, _config(), clock=FakeClock())

        assert await scheduler.run_due() == ["consolidate", "defrag"]
        memex.defrag.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_run_is_logged(self, caplog):
        memex = _memex(error={"tag": "defrag.runAgent", "message": "timed out"})
        scheduler = Scheduler(memex, _config(), clock=FakeClock())

        await scheduler.run_due()

        assert "defrag.runAgent" in caplog.text

    @pytest.mark.asyncio
    async def test_start_stops_on_shutdown(self):
        memex = _memex()
        clock = FakeClock()
        scheduler = Scheduler(memex, _config(), tick=0.01, clock=clock)
        shutdown = asyncio.Event()

        task = asyncio.create_task(scheduler.start(shutdown))
        await asyncio.sleep(0.05)
        shutdown.set()
        await asyncio.wait_for(task, timeout=1)

        # intervals count from start, so nothing was due yet
        memex.consolidate.assert_not_awaited()
        memex.defrag.assert_not_awaited()
