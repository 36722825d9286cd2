"""
Recovery scheduler: startup sweep followed by a bounded number of delayed sweeps.
"""

import asyncio
import logging
from typing import List, Optional

from ..core.config import AssuredJobsConfig
from .models import RecoveryReport
from .recovery import RecoveryCoordinator

logger = logging.getLogger(__name__)


class RecoveryScheduler:
    """
    Triggers recovery sweeps in the background.

    After ``startup_recovery_delay`` seconds one sweep runs; then
    ``delayed_recovery_count`` more run ``delayed_recovery_interval`` seconds
    apart, catching instances that died while this one was starting up.
    """

    def __init__(self, config: AssuredJobsConfig, coordinator: RecoveryCoordinator):
        self.config = config
        self.coordinator = coordinator
        self.reports: List[RecoveryReport] = []
        self._task: Optional[asyncio.Task] = None
        # Created in start() so it belongs to the loop that runs the task
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the schedule as a background task."""
        if self.running:
            logger.warning("Recovery scheduler already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Recovery scheduler started: first sweep in {self.config.startup_recovery_delay}s, "
            f"{self.config.delayed_recovery_count} delayed sweeps every "
            f"{self.config.delayed_recovery_interval}s"
        )

    async def stop(self):
        """Signal the schedule to stop and wait for it to finish."""
        if self._stop_event:
            self._stop_event.set()

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Recovery scheduler stopped")

    async def wait(self):
        """Wait until every scheduled sweep has run."""
        if self._task:
            await self._task

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first. Returns False if the stop signal fired."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return False
        except asyncio.TimeoutError:
            return True

    async def _run(self):
        if not await self._sleep(self.config.startup_recovery_delay):
            return
        await self._sweep("startup")

        for i in range(self.config.delayed_recovery_count):
            if not await self._sleep(self.config.delayed_recovery_interval):
                return
            await self._sweep(f"delayed #{i + 1}")

    async def _sweep(self, label: str):
        logger.debug(f"Running {label} recovery sweep")
        report = await self.coordinator.reenqueue_orphans()
        self.reports.append(report)
        if report.error:
            logger.error(f"{label.capitalize()} recovery sweep failed: {report.error}")
