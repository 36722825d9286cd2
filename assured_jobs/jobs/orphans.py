"""
Orphaned job management.

Read-side queries and manual actions over orphaned jobs, consumed by
dashboards and the command line: list orphans with how long they have been
stale, report instance liveness, and retry or delete orphans by job id.
"""

import time
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.config import AssuredJobsConfig
from ..core.constants import STATUS_ALIVE, STATUS_DEAD
from ..storage.store import StateStore
from .models import ActionResult, InstanceStatus, OrphanedJob, decode_payload
from .recovery import RecoveryCoordinator

logger = logging.getLogger(__name__)


class OrphanedJobsManager:
    """Queries and actions over jobs tracked by dead instances."""

    def __init__(
        self,
        config: AssuredJobsConfig,
        store: StateStore,
        coordinator: RecoveryCoordinator,
    ):
        self.config = config
        self.store = store
        self.coordinator = coordinator

    async def _orphaned_at(self, instance_id: str) -> float:
        heartbeat = await self.store.get_heartbeat(instance_id)
        if heartbeat is not None:
            return heartbeat
        # Marker is gone; the instance was last seen at most one TTL ago
        return time.time() - self.config.heartbeat_ttl

    async def _build_orphan(
        self, instance_id: str, jid: str
    ) -> Optional[OrphanedJob]:
        raw = await self.store.get_payload(jid)
        if raw is None:
            return None
        try:
            payload = decode_payload(raw)
        except ValueError as e:
            logger.warning(f"Skipping orphaned job {jid} with unparseable payload: {e}")
            return None

        orphaned_at = await self._orphaned_at(instance_id)
        return OrphanedJob(
            payload=payload,
            instance_id=instance_id,
            orphaned_at=orphaned_at,
            orphaned_duration=time.time() - orphaned_at,
        )

    async def get_orphaned_jobs(self) -> List[OrphanedJob]:
        """All orphaned jobs, most recently orphaned first."""
        orphans = []
        live_instances = await self.store.live_instance_ids()

        for key in await self.store.tracking_keys():
            instance_id = self.store.instance_id_from_key(key)
            if instance_id in live_instances:
                continue
            for jid in sorted(await self.store.tracked_job_ids(instance_id)):
                orphan = await self._build_orphan(instance_id, jid)
                if orphan:
                    orphans.append(orphan)

        orphans.sort(key=lambda job: job.orphaned_at or 0, reverse=True)
        return orphans

    async def get_orphaned_job(self, jid: str) -> Optional[OrphanedJob]:
        """Look up one orphaned job; None if unknown or its owner is alive."""
        instance_id = await self.store.owner_of(jid)
        if instance_id is None:
            return None
        if await self.store.get_heartbeat(instance_id) is not None:
            return None
        return await self._build_orphan(instance_id, jid)

    async def get_instances_status(self) -> Dict[str, InstanceStatus]:
        """Alive instances plus dead instances that still own tracked jobs."""
        instances: Dict[str, InstanceStatus] = {}

        for instance_id in await self.store.live_instance_ids():
            instances[instance_id] = InstanceStatus(
                instance_id=instance_id,
                status=STATUS_ALIVE,
                last_heartbeat=await self.store.get_heartbeat(instance_id),
                orphaned_job_count=0,
            )

        for key in await self.store.tracking_keys():
            instance_id = self.store.instance_id_from_key(key)
            if instance_id in instances:
                continue
            instances[instance_id] = InstanceStatus(
                instance_id=instance_id,
                status=STATUS_DEAD,
                last_heartbeat=await self._orphaned_at(instance_id),
                orphaned_job_count=await self.store.tracked_count(instance_id),
            )

        return instances

    async def retry_orphaned_job(self, jid: str) -> ActionResult:
        """Re-enqueue one orphaned job and remove its tracking entry."""
        try:
            orphan = await self.get_orphaned_job(jid)
            if orphan is None:
                return ActionResult(success=False, error="Job not found")

            payload = await self.coordinator.recover_job(orphan.instance_id, jid)
            if payload is None:
                return ActionResult(success=False, error="Job not found")

            logger.info(f"Manually re-enqueued orphaned job {jid} ({orphan.job_class})")
            return ActionResult(success=True, message=f"Retried job {jid}")
        except Exception as e:
            logger.error(f"Failed to retry orphaned job {jid}: {e}")
            return ActionResult(success=False, error=str(e))

    async def delete_orphaned_job(self, jid: str) -> ActionResult:
        """Discard one orphaned job without resubmitting it."""
        try:
            orphan = await self.get_orphaned_job(jid)
            if orphan is None:
                return ActionResult(success=False, error="Job not found")

            await self.store.untrack(orphan.instance_id, jid)

            logger.info(f"Deleted orphaned job {jid} ({orphan.job_class})")
            return ActionResult(success=True, message=f"Deleted job {jid}")
        except Exception as e:
            logger.error(f"Failed to delete orphaned job {jid}: {e}")
            return ActionResult(success=False, error=str(e))

    async def bulk_retry_orphaned_jobs(self, jids: Iterable[str]) -> ActionResult:
        return await self._bulk(jids, self.retry_orphaned_job, "Retried")

    async def bulk_delete_orphaned_jobs(self, jids: Iterable[str]) -> ActionResult:
        return await self._bulk(jids, self.delete_orphaned_job, "Deleted")

    async def _bulk(self, jids: Iterable[str], action, verb: str) -> ActionResult:
        success_count = 0
        errors = []

        for jid in jids:
            result = await action(jid)
            if result.success:
                success_count += 1
            else:
                errors.append(f"{jid}: {result.error}")

        if errors:
            return ActionResult(
                success=False,
                error=f"{verb} {success_count} jobs, failed: {', '.join(errors)}",
            )
        return ActionResult(success=True, message=f"{verb} {success_count} jobs")

    async def get_stats(self) -> Dict[str, Any]:
        """Summary counts for dashboards."""
        orphans = await self.get_orphaned_jobs()
        instances = await self.get_instances_status()

        oldest = None
        if orphans:
            oldest = max(job.orphaned_duration or 0 for job in orphans)

        return {
            "total_orphaned_jobs": len(orphans),
            "dead_instances": sum(
                1 for info in instances.values() if info.status == STATUS_DEAD
            ),
            "live_instances": sum(
                1 for info in instances.values() if info.status == STATUS_ALIVE
            ),
            "oldest_orphaned_job": oldest,
        }
