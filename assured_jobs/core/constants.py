"""System-wide constants"""

# Environment variables
ENV_INSTANCE_ID = "ASSURED_JOBS_INSTANCE_ID"
ENV_NAMESPACE = "ASSURED_JOBS_NS"
ENV_HEARTBEAT_INTERVAL = "ASSURED_JOBS_HEARTBEAT_INTERVAL"
ENV_HEARTBEAT_TTL = "ASSURED_JOBS_HEARTBEAT_TTL"
ENV_RECOVERY_LOCK_TTL = "ASSURED_JOBS_RECOVERY_LOCK_TTL"
ENV_DELAYED_RECOVERY_COUNT = "ASSURED_JOBS_DELAYED_RECOVERY_COUNT"
ENV_DELAYED_RECOVERY_INTERVAL = "ASSURED_JOBS_DELAYED_RECOVERY_INTERVAL"
ENV_STARTUP_DELAY = "ASSURED_JOBS_STARTUP_DELAY"
ENV_REDIS_URL = "ASSURED_JOBS_REDIS_URL"

# Defaults
DEFAULT_NAMESPACE = "assured_jobs"
DEFAULT_HEARTBEAT_INTERVAL = 15  # seconds between heartbeats
DEFAULT_HEARTBEAT_TTL = 45  # liveness marker expiry
DEFAULT_RECOVERY_LOCK_TTL = 300  # 5 minutes
DEFAULT_DELAYED_RECOVERY_COUNT = 1
DEFAULT_DELAYED_RECOVERY_INTERVAL = 300
DEFAULT_STARTUP_DELAY = 5  # grace period before the first sweep
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_QUEUE = "default"

# Key segments (prefixed with "<namespace>:")
INSTANCE_SEGMENT = "instance"
JOBS_SEGMENT = "jobs"
JOB_SEGMENT = "job"
RECOVERY_LOCK_SEGMENT = "recovery_lock"

# Job runtime queue layout
QUEUE_PREFIX = "queue"
QUEUES_SET = "queues"

# Instance states
STATUS_ALIVE = "alive"
STATUS_DEAD = "dead"
