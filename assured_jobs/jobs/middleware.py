"""
Job tracking middleware.

Wraps job execution so that while an opted-in job runs, a tracking entry for
it exists in the shared store under the local instance:

    <ns>:jobs:<instance_id>  set containing the job id
    <ns>:job:<jid>           full JSON payload, enough to resubmit the job

The entry is written before the job body starts and removed on every exit
path. If the process dies in between, the entry outlives it and recovery on
another instance picks the job up.
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Union

from ..core.config import AssuredJobsConfig
from ..storage.store import StateStore
from .models import encode_payload
from .options import tracking_enabled

logger = logging.getLogger(__name__)

JobHandler = Callable[[], Union[Awaitable[Any], Any]]


class TrackingMiddleware:
    """Server middleware invoked with ``(worker, job, queue)`` around each job."""

    def __init__(self, config: AssuredJobsConfig, store: StateStore):
        self.config = config
        self.store = store

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    def should_track(self, worker: Any, job: Dict[str, Any]) -> bool:
        return tracking_enabled(worker) and bool(job.get("jid"))

    async def call(
        self, worker: Any, job: Dict[str, Any], queue: str, handler: JobHandler
    ) -> Any:
        """
        Run ``handler`` inside a tracking scope and return its result.

        Coroutine functions run on the event loop. Plain callables run in the
        default executor so the heartbeat keeps ticking while they block.
        """
        async with self.track(worker, job, queue):
            if inspect.iscoroutinefunction(handler):
                return await handler()

            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, handler)
            if inspect.isawaitable(result):
                result = await result
            return result

    @asynccontextmanager
    async def track(self, worker: Any, job: Dict[str, Any], queue: str):
        """
        Tracking scope for one job execution attempt.

        Store failures are logged and never prevent the job from running;
        exceptions raised by the job propagate unchanged after cleanup.
        """
        if not self.should_track(worker, job):
            yield
            return

        jid = job["jid"]

        try:
            await self.store.track(self.instance_id, jid, encode_payload(job))
            logger.debug(f"Started tracking job {jid} on instance {self.instance_id}")
        except Exception as e:
            logger.error(f"Failed to start tracking job {jid}: {e}", exc_info=True)

        try:
            yield
        finally:
            try:
                await self.store.untrack(self.instance_id, jid)
                logger.debug(f"Stopped tracking job {jid} on instance {self.instance_id}")
            except Exception as e:
                logger.error(f"Failed to stop tracking job {jid}: {e}")
