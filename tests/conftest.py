"""
Pytest configuration and fixtures for the assured-jobs tests.

Every simulated instance gets its own Redis client, but all clients share one
in-memory fakeredis server, the same way real instances share one Redis.
"""

import pytest
import fakeredis

from assured_jobs.core.config import AssuredJobsConfig
from assured_jobs.storage.store import StateStore
from assured_jobs.jobs.recovery import RecoveryCoordinator
from assured_jobs.jobs.runtime import JobRuntime

from tests.fixtures.sample_jobs import TEST_NAMESPACE, RecordingRuntime


@pytest.fixture
def redis_server():
    """One shared in-memory Redis per test."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server):
    """Async client used for assertions against the shared store."""
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def make_config():
    """Factory for fast-ticking configurations, one per simulated instance."""

    def _make(instance_id: str = "instance-a", **overrides) -> AssuredJobsConfig:
        settings = dict(
            instance_id=instance_id,
            namespace=TEST_NAMESPACE,
            heartbeat_interval=0.05,
            heartbeat_ttl=3,
            recovery_lock_ttl=10,
            delayed_recovery_count=0,
            delayed_recovery_interval=0.05,
            startup_recovery_delay=0,
        )
        settings.update(overrides)
        return AssuredJobsConfig(**settings)

    return _make


@pytest.fixture
def make_store(redis_server):
    """Factory for stores with their own connection to the shared server."""

    def _make(namespace: str = TEST_NAMESPACE) -> StateStore:
        client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
        return StateStore(client, namespace)

    return _make


@pytest.fixture
def store(make_store):
    return make_store()


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def runtime():
    return RecordingRuntime()


@pytest.fixture
def make_coordinator(make_config, make_store, runtime):
    """Factory for recovery coordinators running on different instances."""

    def _make(instance_id: str, job_runtime: JobRuntime = None, **kwargs):
        return RecoveryCoordinator(
            make_config(instance_id),
            make_store(),
            job_runtime or runtime,
            **kwargs,
        )

    return _make
