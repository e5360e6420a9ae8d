"""Scheduler for periodic pipeline runs using pure asyncio.

Jobs:
- Consolidate: drain the intake queue into notes (every N hours)
- Defrag: reorganize notes and rewrite AGENTS.md (every M hours)

Jobs run one after another on the scheduler task, so two runs never overlap.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memex.config import MemexConfig
    from memex.core import Memex
    from memex.workflow import WorkflowRun

logger = logging.getLogger(__name__)

TICK_SECONDS = 60


class Scheduler:
    """Simple asyncio-based scheduler for the two memory pipelines."""

    def __init__(
        self,
        memex: Memex,
        config: MemexConfig,
        tick: float = TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._memex = memex
        self._tick = tick
        self._clock = clock
        self._intervals = {
            "consolidate": config.schedule.consolidate_interval_hours * 3600,
            "defrag": config.schedule.defrag_interval_hours * 3600,
        }
        self._last_run: dict[str, float] = {}

    async def start(self, shutdown_event: asyncio.Event) -> None:
        """Run scheduled jobs until shutdown_event is set."""
        logger.info(
            "Scheduler started (consolidate every %.1fh, defrag every %.1fh)",
            self._intervals["consolidate"] / 3600,
            self._intervals["defrag"] / 3600,
        )
        started = self._clock()
        self._last_run = {name: started for name in self._intervals}

        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self._tick)
                break  # shutdown requested
            except asyncio.TimeoutError:
                pass

            await self.run_due()

        logger.info("Scheduler stopped.")

    def due(self) -> list[str]:
        now = self._clock()
        return [
            name
            for name, interval in self._intervals.items()
            if now - self._last_run.get(name, float("-inf")) >= interval
        ]

    async def run_due(self) -> list[str]:
        """Run every job whose interval has elapsed. Returns the names run."""
        ran = []
        for name in self.due():
            job: Callable[[], Awaitable[WorkflowRun]] = (
                self._memex.consolidate if name == "consolidate" else self._memex.defrag
            )
            await self._run_job(name, job)
            self._last_run[name] = self._clock()
            ran.append(name)
        return ran

    async def _run_job(self, name: str, job: Callable[[], Awaitable[WorkflowRun]]) -> None:
        logger.info("Running scheduled %s", name)
        try:
            run = await job()
        except Exception as e:
            logger.error("Scheduled %s failed: %s", name, e)
            return
        if run.error:
            logger.error("Scheduled %s failed: [%s] %s", name, run.error["tag"], run.error["message"])
