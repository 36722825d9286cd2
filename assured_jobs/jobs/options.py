"""
Declared worker options.

A worker class opts into tracking by carrying a ``JobOptions`` value with
``assured=True``, attached when the class is defined.
"""

from dataclasses import dataclass
from typing import Any, Optional

OPTIONS_ATTR = "job_options"


@dataclass(frozen=True)
class JobOptions:
    """Options declared by a worker class."""
    assured: bool = False


def job_options(assured: bool = False):
    """
    Class decorator attaching ``JobOptions`` to a worker class.

    Example:
        @job_options(assured=True)
        class ChargeCardWorker:
            def perform(self, order_id): ...
    """

    def decorator(cls):
        setattr(cls, OPTIONS_ATTR, JobOptions(assured=assured))
        return cls

    return decorator


class AssuredWorker:
    """Base class for workers whose jobs are recovered after a crash."""

    job_options = JobOptions(assured=True)


def get_job_options(worker: Any) -> Optional[JobOptions]:
    """Return the options declared by a worker class or instance, if any."""
    worker_class = worker if isinstance(worker, type) else type(worker)
    options = getattr(worker_class, OPTIONS_ATTR, None)
    return options if isinstance(options, JobOptions) else None


def tracking_enabled(worker: Any) -> bool:
    """True if jobs run by ``worker`` should be tracked for recovery."""
    options = get_job_options(worker)
    return options is not None and options.assured
