"""
Shared state store backed by Redis.

Every cross-instance interaction goes through this module: liveness markers,
per-instance tracking sets, job payloads and the recovery lock. All keys are
prefixed with the configured namespace so several independent deployments can
share one Redis database.
"""

import time
import logging
from contextlib import contextmanager
from typing import List, Optional, Set

import redis
import redis.asyncio as aioredis

from ..core.constants import (
    INSTANCE_SEGMENT,
    JOBS_SEGMENT,
    JOB_SEGMENT,
    RECOVERY_LOCK_SEGMENT,
)
from ..core.exceptions import StoreError

logger = logging.getLogger(__name__)

GLOB_SPECIAL_CHARS = "\\*?[]"


def escape_glob(text: str) -> str:
    """Escape characters that SCAN MATCH would treat as a pattern."""
    return "".join(f"\\{char}" if char in GLOB_SPECIAL_CHARS else char for char in text)


class StateStore:
    """Namespaced view over an async Redis client."""

    def __init__(self, client: aioredis.Redis, namespace: str):
        self.client = client
        self.namespace = namespace
        self._key_prefix = f"{namespace}:"

    @classmethod
    def from_url(cls, url: str, namespace: str) -> "StateStore":
        """Create a store connected to the Redis instance at ``url``."""
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        return cls(client, namespace)

    @contextmanager
    def _errors(self, operation: str):
        try:
            yield
        except redis.RedisError as e:
            raise StoreError(f"{operation} failed: {e}") from e

    # Key layout

    def _make_key(self, segment: str, key: Optional[str] = None) -> str:
        if key is None:
            return f"{self._key_prefix}{segment}"
        return f"{self._key_prefix}{segment}:{key}"

    def instance_key(self, instance_id: str) -> str:
        return self._make_key(INSTANCE_SEGMENT, instance_id)

    def jobs_key(self, instance_id: str) -> str:
        return self._make_key(JOBS_SEGMENT, instance_id)

    def job_key(self, jid: str) -> str:
        return self._make_key(JOB_SEGMENT, jid)

    def lock_key(self) -> str:
        return self._make_key(RECOVERY_LOCK_SEGMENT)

    def instance_id_from_key(self, key: str) -> str:
        """Extract the instance id from an ``instance:`` or ``jobs:`` key."""
        for segment in (INSTANCE_SEGMENT, JOBS_SEGMENT):
            prefix = self._make_key(segment, "")
            if key.startswith(prefix):
                return key[len(prefix):]
        raise ValueError(f"Not an instance-scoped key: {key}")

    async def _scan(self, segment: str) -> List[str]:
        # Only the trailing wildcard is a pattern; the namespace is literal
        pattern = escape_glob(self._make_key(segment, "")) + "*"
        return [key async for key in self.client.scan_iter(match=pattern)]

    # Liveness markers

    async def write_heartbeat(self, instance_id: str, ttl: int) -> None:
        with self._errors("heartbeat write"):
            await self.client.set(self.instance_key(instance_id), time.time(), ex=ttl)

    async def delete_heartbeat(self, instance_id: str) -> None:
        with self._errors("heartbeat delete"):
            await self.client.delete(self.instance_key(instance_id))

    async def get_heartbeat(self, instance_id: str) -> Optional[float]:
        """Return the last heartbeat timestamp, or None if the marker is gone."""
        with self._errors("heartbeat read"):
            value = await self.client.get(self.instance_key(instance_id))
        return float(value) if value is not None else None

    async def live_instance_ids(self) -> Set[str]:
        with self._errors("instance scan"):
            keys = await self._scan(INSTANCE_SEGMENT)
        return {self.instance_id_from_key(key) for key in keys}

    # Tracking entries

    async def tracking_keys(self) -> List[str]:
        with self._errors("tracking scan"):
            return await self._scan(JOBS_SEGMENT)

    async def track(self, instance_id: str, jid: str, payload: str) -> None:
        """Atomically add ``jid`` to the instance's set and store its payload."""
        with self._errors(f"track {jid}"):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.sadd(self.jobs_key(instance_id), jid)
                pipe.set(self.job_key(jid), payload)
                await pipe.execute()

    async def untrack(self, instance_id: str, jid: str) -> None:
        """Atomically remove ``jid`` from the instance's set and drop its payload."""
        with self._errors(f"untrack {jid}"):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.srem(self.jobs_key(instance_id), jid)
                pipe.delete(self.job_key(jid))
                await pipe.execute()

    async def tracked_job_ids(self, instance_id: str) -> Set[str]:
        with self._errors("tracking read"):
            return set(await self.client.smembers(self.jobs_key(instance_id)))

    async def tracked_count(self, instance_id: str) -> int:
        with self._errors("tracking count"):
            return int(await self.client.scard(self.jobs_key(instance_id)))

    async def is_tracked_by(self, instance_id: str, jid: str) -> bool:
        with self._errors("tracking membership"):
            return bool(await self.client.sismember(self.jobs_key(instance_id), jid))

    async def get_payload(self, jid: str) -> Optional[str]:
        with self._errors(f"payload read {jid}"):
            return await self.client.get(self.job_key(jid))

    async def claim_payload(self, instance_id: str, jid: str) -> Optional[str]:
        """
        Take ownership of a tracking entry for recovery.

        Reads and deletes the payload and removes ``jid`` from the owner's set
        in one transaction, so at most one caller ever receives the payload.

        Returns:
            The raw payload, or None if it was already gone
        """
        with self._errors(f"claim {jid}"):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.get(self.job_key(jid))
                pipe.delete(self.job_key(jid))
                pipe.srem(self.jobs_key(instance_id), jid)
                raw, _, _ = await pipe.execute()
        return raw

    async def restore(self, instance_id: str, jid: str, payload: str) -> None:
        """Put a claimed tracking entry back under its original owner."""
        await self.track(instance_id, jid, payload)

    async def owner_of(self, jid: str) -> Optional[str]:
        """Find which instance's tracking set contains ``jid``."""
        for key in await self.tracking_keys():
            with self._errors("tracking membership"):
                if await self.client.sismember(key, jid):
                    return self.instance_id_from_key(key)
        return None

    # Recovery lock

    async def acquire_lock(self, holder: str, ttl: int) -> bool:
        """SET NX with expiry; True only if this call created the lock."""
        with self._errors("lock acquire"):
            result = await self.client.set(self.lock_key(), holder, nx=True, ex=ttl)
        return bool(result)

    async def release_lock(self) -> None:
        with self._errors("lock release"):
            await self.client.delete(self.lock_key())

    async def lock_holder(self) -> Optional[str]:
        with self._errors("lock read"):
            return await self.client.get(self.lock_key())

    async def close(self) -> None:
        await self.client.aclose()
