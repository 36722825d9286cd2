"""
Process configuration for assured jobs.

The configuration is read from the environment exactly once, at startup, and
handed to every component as an immutable value.
"""

import os
import uuid
import logging
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .constants import (
    ENV_INSTANCE_ID,
    ENV_NAMESPACE,
    ENV_HEARTBEAT_INTERVAL,
    ENV_HEARTBEAT_TTL,
    ENV_RECOVERY_LOCK_TTL,
    ENV_DELAYED_RECOVERY_COUNT,
    ENV_DELAYED_RECOVERY_INTERVAL,
    ENV_STARTUP_DELAY,
    ENV_REDIS_URL,
    DEFAULT_NAMESPACE,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_HEARTBEAT_TTL,
    DEFAULT_RECOVERY_LOCK_TTL,
    DEFAULT_DELAYED_RECOVERY_COUNT,
    DEFAULT_DELAYED_RECOVERY_INTERVAL,
    DEFAULT_STARTUP_DELAY,
    DEFAULT_REDIS_URL,
)
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def generate_instance_id() -> str:
    """Generate a random instance identifier (16 hex characters)."""
    return uuid.uuid4().hex[:16]


@dataclass(frozen=True)
class AssuredJobsConfig:
    """Immutable configuration shared by every assured-jobs component."""

    instance_id: str = field(default_factory=generate_instance_id)
    namespace: str = DEFAULT_NAMESPACE
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    heartbeat_ttl: int = DEFAULT_HEARTBEAT_TTL
    recovery_lock_ttl: int = DEFAULT_RECOVERY_LOCK_TTL
    delayed_recovery_count: int = DEFAULT_DELAYED_RECOVERY_COUNT
    delayed_recovery_interval: float = DEFAULT_DELAYED_RECOVERY_INTERVAL
    startup_recovery_delay: float = DEFAULT_STARTUP_DELAY
    redis_url: str = DEFAULT_REDIS_URL

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.instance_id:
            raise ConfigurationError("instance_id must not be empty")
        if not self.namespace:
            raise ConfigurationError("namespace must not be empty")
        for name in ("heartbeat_interval", "heartbeat_ttl", "recovery_lock_ttl"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.delayed_recovery_count < 0:
            raise ConfigurationError("delayed_recovery_count must not be negative")

        # Misconfiguration is allowed, but risks live instances looking dead
        if self.heartbeat_interval >= self.heartbeat_ttl:
            logger.warning(
                f"heartbeat_interval ({self.heartbeat_interval}s) should be lower than "
                f"heartbeat_ttl ({self.heartbeat_ttl}s); instance {self.instance_id} "
                f"may be reported dead between heartbeats"
            )

    @classmethod
    def from_environment(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "AssuredJobsConfig":
        """
        Load configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            AssuredJobsConfig: Loaded configuration

        Raises:
            ConfigurationError: If a numeric setting cannot be parsed
        """
        env = os.environ if environ is None else environ

        instance_id = env.get(ENV_INSTANCE_ID) or generate_instance_id()
        redis_url = env.get(ENV_REDIS_URL) or env.get("REDIS_URL") or DEFAULT_REDIS_URL

        config = cls(
            instance_id=instance_id,
            namespace=env.get(ENV_NAMESPACE, DEFAULT_NAMESPACE),
            heartbeat_interval=_float_setting(
                env, ENV_HEARTBEAT_INTERVAL, DEFAULT_HEARTBEAT_INTERVAL
            ),
            heartbeat_ttl=_int_setting(env, ENV_HEARTBEAT_TTL, DEFAULT_HEARTBEAT_TTL),
            recovery_lock_ttl=_int_setting(
                env, ENV_RECOVERY_LOCK_TTL, DEFAULT_RECOVERY_LOCK_TTL
            ),
            delayed_recovery_count=_int_setting(
                env, ENV_DELAYED_RECOVERY_COUNT, DEFAULT_DELAYED_RECOVERY_COUNT
            ),
            delayed_recovery_interval=_float_setting(
                env, ENV_DELAYED_RECOVERY_INTERVAL, DEFAULT_DELAYED_RECOVERY_INTERVAL
            ),
            startup_recovery_delay=_float_setting(
                env, ENV_STARTUP_DELAY, DEFAULT_STARTUP_DELAY
            ),
            redis_url=redis_url,
        )

        logger.info(
            f"Assured jobs config loaded: instance={config.instance_id} "
            f"namespace={config.namespace}"
        )
        return config

    def with_overrides(self, **overrides) -> "AssuredJobsConfig":
        """Return a copy of this configuration with some fields replaced."""
        return replace(self, **overrides)


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
