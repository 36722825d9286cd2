"""
Orphan recovery.

A recovery sweep finds tracking sets whose owning instance no longer has a
liveness marker and puts every job in them back on its queue. Sweeps run
under a cluster-wide lock so that only one instance per namespace does the
work at a time; an instance that loses the race simply skips its round.

Dead-instance detection is recomputed from scratch on every sweep, which is
what makes re-running a sweep after a crash safe: a job that was already
resubmitted and picked up again is tracked under a live instance and is no
longer considered orphaned.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from ..core.config import AssuredJobsConfig
from ..core.exceptions import RecoveryError
from ..storage.store import StateStore
from .models import RecoveryReport, decode_payload
from .runtime import JobRuntime, UniqueLockBackend

logger = logging.getLogger(__name__)


class RecoveryCoordinator:
    """Runs locked recovery sweeps for one namespace."""

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
        self.unique_locks = unique_locks

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    @asynccontextmanager
    async def recovery_lock(self):
        """
        Yield True if this instance acquired the recovery lock, else False.

        An acquired lock is deleted on exit whether or not the body raised.
        The lock TTL bounds how long a crashed holder can block other sweeps.
        """
        acquired = await self.store.acquire_lock(
            self.instance_id, self.config.recovery_lock_ttl
        )
        if not acquired:
            logger.debug(
                "Recovery lock not acquired, another instance is handling recovery"
            )
            yield False
            return

        logger.info(f"Recovery lock acquired by instance {self.instance_id}")
        try:
            yield True
        finally:
            try:
                await self.store.release_lock()
                logger.info(f"Recovery lock released by instance {self.instance_id}")
            except Exception as e:
                logger.error(
                    f"Failed to release recovery lock for instance {self.instance_id}: {e}"
                )

    async def reenqueue_orphans(self) -> RecoveryReport:
        """
        Run one recovery sweep.

        Never raises: failures are logged with their traceback and reported in
        the returned ``RecoveryReport``. The next scheduled sweep retries.
        """
        report = RecoveryReport(instance_id=self.instance_id)

        try:
            async with self.recovery_lock() as acquired:
                report.lock_acquired = acquired
                if acquired:
                    await self._sweep(report)
        except Exception as e:
            report.error = str(e)
            logger.error(f"Orphan recovery failed: {e}", exc_info=True)

        return report

    async def _sweep(self, report: RecoveryReport):
        logger.info("Starting orphan job recovery")

        # Tracking sets are listed before liveness markers so that any set seen
        # here belongs to an instance whose marker is checked afterwards.
        tracking_keys = await self.store.tracking_keys()
        live_instances = await self.store.live_instance_ids()

        for key in tracking_keys:
            instance_id = self.store.instance_id_from_key(key)
            if instance_id in live_instances:
                continue

            report.dead_instances.append(instance_id)
            jids = sorted(await self.store.tracked_job_ids(instance_id))
            if jids:
                logger.info(
                    f"Found {len(jids)} orphaned jobs from dead instance {instance_id}, "
                    f"re-enqueuing"
                )

            # Redis drops the set once its last member has been claimed
            for jid in jids:
                payload = await self.recover_job(instance_id, jid)
                if payload is not None:
                    report.recovered_jids.append(jid)

        if report.recovered_jids:
            logger.info(f"Recovered {report.recovered_count} orphaned jobs")
        else:
            logger.info("Found no orphaned jobs")

    async def recover_job(self, instance_id: str, jid: str) -> Optional[Dict[str, Any]]:
        """
        Claim one tracking entry and resubmit its payload.

        Returns the resubmitted payload, or None if there was nothing to
        resubmit. If the enqueue fails the entry is restored under its owner
        and RecoveryError is raised.
        """
        raw = await self.store.claim_payload(instance_id, jid)
        if raw is None:
            logger.warning(
                f"Tracked job {jid} from dead instance {instance_id} has no payload, "
                f"dropping tracking entry"
            )
            return None

        try:
            payload = decode_payload(raw)
        except ValueError as e:
            logger.error(f"Discarding unparseable payload for orphaned job {jid}: {e}")
            return None

        await self.clear_unique_lock(payload)

        try:
            await self.runtime.enqueue(payload)
        except Exception as e:
            # Put the entry back so the next sweep can try again
            try:
                await self.store.restore(instance_id, jid, raw)
            except Exception as restore_error:
                logger.critical(
                    f"Could not restore tracking entry for job {jid} after failed "
                    f"re-enqueue, payload: {raw} ({restore_error})"
                )
            raise RecoveryError(f"Failed to re-enqueue orphaned job {jid}: {e}") from e

        logger.info(f"Re-enqueued job {jid} ({payload.get('class')})")
        return payload

    async def clear_unique_lock(self, payload: Dict[str, Any]) -> bool:
        """
        Best-effort removal of the uniqueness lock held for a job.

        Returns True if a lock was cleared. Failures are logged and never
        prevent the job from being resubmitted.
        """
        digest = payload.get("unique_digest")
        if not digest:
            return False

        if self.unique_locks is None:
            logger.debug(
                f"No unique lock backend configured, skipping lock cleanup "
                f"for job {payload.get('jid')}"
            )
            return False

        try:
            await self.unique_locks.clear(digest)
            logger.info(
                f"Cleared unique lock for job {payload.get('jid')} with digest {digest}"
            )
            return True
        except Exception as e:
            logger.warning(
                f"Failed to clear unique lock for job {payload.get('jid')}: {e}"
            )
            return False
