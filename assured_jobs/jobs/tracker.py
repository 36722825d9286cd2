"""
Assured jobs facade.

Wires the heartbeat manager, tracking middleware, recovery coordinator,
recovery scheduler and orphan manager for one process, and exposes the
startup/shutdown hooks the job-processing runtime calls.
"""

import logging
from typing import Optional

from ..core.config import AssuredJobsConfig
from ..storage.store import StateStore
from .heartbeat import HeartbeatManager
from .middleware import TrackingMiddleware
from .models import RecoveryReport
from .orphans import OrphanedJobsManager
from .recovery import RecoveryCoordinator
from .runtime import (
    JobRuntime,
    RedisQueueRuntime,
    RedisUniqueLockBackend,
    UniqueLockBackend,
)
from .scheduler import RecoveryScheduler

logger = logging.getLogger(__name__)


class AssuredJobs:
    """Crash recovery for one worker process."""

    def __init__(
        self,
        config: AssuredJobsConfig,
        store: StateStore,
        runtime: JobRuntime,
        unique_locks: Optional[UniqueLockBackend] = None,
    ):
        self.config = config
        self.store = store
        self.runtime = runtime

        self.heartbeat = HeartbeatManager(config, store)
        self.middleware = TrackingMiddleware(config, store)
        self.coordinator = RecoveryCoordinator(config, store, runtime, unique_locks)
        self.scheduler = RecoveryScheduler(config, self.coordinator)
        self.orphans = OrphanedJobsManager(config, store, self.coordinator)

    @classmethod
    def from_config(
        cls,
        config: AssuredJobsConfig,
        unique_locks: Optional[UniqueLockBackend] = None,
        redis_unique_locks: bool = False,
    ) -> "AssuredJobs":
        """
        Build a tracker whose store and job queues share the configured Redis.

        With ``redis_unique_locks`` and no explicit backend, uniqueness locks
        are cleared from the same Redis before orphans are resubmitted.
        """
        store = StateStore.from_url(config.redis_url, config.namespace)
        if unique_locks is None and redis_unique_locks:
            unique_locks = RedisUniqueLockBackend(store.client)
        return cls(config, store, RedisQueueRuntime(store.client), unique_locks)

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    async def startup(self):
        """Runtime startup hook: begin heartbeats and schedule recovery sweeps."""
        logger.info(f"Assured jobs starting up on instance {self.instance_id}")
        await self.heartbeat.start()
        self.scheduler.start()

    async def shutdown(self):
        """
        Runtime shutdown hook.

        Only the liveness marker is removed. Jobs still tracked under this
        instance are left in place on purpose so another instance recovers them.
        """
        logger.info(f"Assured jobs shutting down instance {self.instance_id}")

        await self.scheduler.stop()
        await self.heartbeat.stop(remove_marker=True)

        try:
            tracked = sorted(await self.store.tracked_job_ids(self.instance_id))
        except Exception as e:
            logger.error(f"Shutdown cleanup failed for instance {self.instance_id}: {e}")
            return

        if tracked:
            logger.warning(
                f"Leaving {len(tracked)} tracked jobs for orphan recovery: {', '.join(tracked)}"
            )
        else:
            logger.info("No tracked jobs to leave for recovery")

    async def reenqueue_orphans(self) -> RecoveryReport:
        """Run one locked recovery sweep now."""
        return await self.coordinator.reenqueue_orphans()

    async def close(self):
        await self.store.close()
