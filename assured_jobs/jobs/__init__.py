"""
Job tracking and orphan recovery for assured jobs.

This module provides Redis-based crash recovery for background jobs:
- Per-instance heartbeats with TTL-based failure detection
- Tracking entries for every in-flight opted-in job
- Cluster-exclusive recovery sweeps that resubmit orphaned jobs
- Queries and manual actions over orphaned jobs
"""

from .heartbeat import HeartbeatManager
from .middleware import TrackingMiddleware
from .models import (
    ActionResult,
    InstanceStatus,
    OrphanedJob,
    RecoveryReport,
)
from .options import AssuredWorker, JobOptions, job_options, tracking_enabled
from .orphans import OrphanedJobsManager
from .recovery import RecoveryCoordinator
from .runtime import (
    JobRuntime,
    RedisQueueRuntime,
    RedisUniqueLockBackend,
    UniqueLockBackend,
)
from .scheduler import RecoveryScheduler
from .tracker import AssuredJobs

__all__ = [
    "AssuredJobs",
    "HeartbeatManager",
    "TrackingMiddleware",
    "RecoveryCoordinator",
    "RecoveryScheduler",
    "OrphanedJobsManager",
    "ActionResult",
    "InstanceStatus",
    "OrphanedJob",
    "RecoveryReport",
    "AssuredWorker",
    "JobOptions",
    "job_options",
    "tracking_enabled",
    "JobRuntime",
    "RedisQueueRuntime",
    "RedisUniqueLockBackend",
    "UniqueLockBackend",
]
