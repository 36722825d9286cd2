"""
Assured jobs: crash recovery for background-job worker fleets.

If a worker process dies mid-job, another live instance notices the missing
heartbeat and resubmits the job it was running.
"""

__version__ = "0.1.0"

from .core import AssuredJobsConfig, AssuredJobsError, StoreError
from .storage import StateStore
from .jobs import (
    AssuredJobs,
    AssuredWorker,
    JobOptions,
    JobRuntime,
    RedisQueueRuntime,
    RedisUniqueLockBackend,
    TrackingMiddleware,
    UniqueLockBackend,
    job_options,
    tracking_enabled,
)

__all__ = [
    "AssuredJobs",
    "AssuredJobsConfig",
    "AssuredJobsError",
    "StoreError",
    "StateStore",
    "AssuredWorker",
    "JobOptions",
    "JobRuntime",
    "RedisQueueRuntime",
    "RedisUniqueLockBackend",
    "TrackingMiddleware",
    "UniqueLockBackend",
    "job_options",
    "tracking_enabled",
]
