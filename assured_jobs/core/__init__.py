"""Core module exports"""

from .config import AssuredJobsConfig
from .exceptions import (
    AssuredJobsError,
    ConfigurationError,
    StoreError,
    RecoveryError,
)
from .constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_HEARTBEAT_TTL,
    DEFAULT_RECOVERY_LOCK_TTL,
    STATUS_ALIVE,
    STATUS_DEAD,
)

__all__ = [
    # Configuration
    "AssuredJobsConfig",
    # Exceptions
    "AssuredJobsError",
    "ConfigurationError",
    "StoreError",
    "RecoveryError",
    # Constants
    "DEFAULT_NAMESPACE",
    "DEFAULT_HEARTBEAT_INTERVAL",
    "DEFAULT_HEARTBEAT_TTL",
    "DEFAULT_RECOVERY_LOCK_TTL",
    "STATUS_ALIVE",
    "STATUS_DEAD",
]
