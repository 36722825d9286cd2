"""
Collaborators provided by the job-processing runtime.

Recovery only needs two things from the runtime: a way to put a raw job
payload back on its queue, and (optionally) a way to clear a uniqueness lock
held for that job so the resubmitted copy is not rejected as a duplicate.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import redis.asyncio as aioredis

from ..core.constants import DEFAULT_QUEUE, QUEUE_PREFIX, QUEUES_SET

logger = logging.getLogger(__name__)


class JobRuntime(ABC):
    """Enqueue entry point of the job-processing runtime."""

    @abstractmethod
    async def enqueue(self, payload: Dict[str, Any]) -> str:
        """Push a raw job payload onto its queue and return the job id"""
        pass


class UniqueLockBackend(ABC):
    """Externally owned uniqueness locks keyed by digest."""

    @abstractmethod
    async def clear(self, digest: str) -> None:
        """Remove every lock held for ``digest``"""
        pass


class RedisQueueRuntime(JobRuntime):
    """Runtime whose queues are Redis lists named ``<prefix>:<queue>``."""

    def __init__(self, client: aioredis.Redis, queue_prefix: str = QUEUE_PREFIX):
        self.client = client
        self.queue_prefix = queue_prefix

    def queue_key(self, queue: str) -> str:
        return f"{self.queue_prefix}:{queue}"

    async def enqueue(self, payload: Dict[str, Any]) -> str:
        queue = payload.get("queue") or DEFAULT_QUEUE
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.sadd(QUEUES_SET, queue)
            pipe.lpush(self.queue_key(queue), json.dumps(payload))
            await pipe.execute()

        logger.debug(f"Enqueued job {payload.get('jid')} on queue {queue}")
        return payload.get("jid")


class RedisUniqueLockBackend(UniqueLockBackend):
    """Deletes the digest key and any ``<digest>:*`` sub-keys."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def clear(self, digest: str) -> None:
        keys = [digest]
        keys.extend([key async for key in self.client.scan_iter(match=f"{digest}:*")])
        await self.client.delete(*keys)
