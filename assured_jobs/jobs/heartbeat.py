"""
Heartbeat manager: keeps the local instance's liveness marker fresh.
"""

import asyncio
import logging
from typing import Optional

from ..core.config import AssuredJobsConfig
from ..storage.store import StateStore

logger = logging.getLogger(__name__)


class HeartbeatManager:
    """
    Publishes a TTL-bound liveness marker for this instance.

    The marker is written immediately on start and refreshed every
    ``heartbeat_interval`` seconds by a background task. A failed refresh is
    logged and retried on the next tick. Stopping deletes the marker so that
    any jobs still tracked under this instance become recoverable at once.
    """

    def __init__(self, config: AssuredJobsConfig, store: StateStore):
        self.config = config
        self.store = store
        self._task: Optional[asyncio.Task] = None
        # Created in start() so it belongs to the loop that runs the task
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def beat(self) -> bool:
        """Write one heartbeat. Returns False if the store was unreachable."""
        try:
            await self.store.write_heartbeat(self.instance_id, self.config.heartbeat_ttl)
            logger.debug(f"Heartbeat sent for instance {self.instance_id}")
            return True
        except Exception as e:
            logger.error(f"Heartbeat failed for instance {self.instance_id}: {e}")
            return False

    async def start(self):
        """Send the first heartbeat and start the refresh loop."""
        if self.running:
            logger.warning(f"Heartbeat already running for instance {self.instance_id}")
            return

        self._stop_event = asyncio.Event()
        await self.beat()
        self._task = asyncio.create_task(self._heartbeat_loop())
        logger.info(
            f"Heartbeat started for instance {self.instance_id} "
            f"(interval={self.config.heartbeat_interval}s, ttl={self.config.heartbeat_ttl}s)"
        )

    async def stop(self, remove_marker: bool = True):
        """Stop the refresh loop and, by default, delete the liveness marker."""
        if self._stop_event:
            self._stop_event.set()

        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if remove_marker:
            try:
                await self.store.delete_heartbeat(self.instance_id)
            except Exception as e:
                logger.error(
                    f"Failed to remove liveness marker for instance {self.instance_id}: {e}"
                )

        logger.info(f"Heartbeat stopped for instance {self.instance_id}")

    async def _heartbeat_loop(self):
        """Refresh the marker until the stop event is set."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.heartbeat_interval
                )
            except asyncio.TimeoutError:
                await self.beat()
