"""
Unit tests for orphan recovery sweeps.

Instances are simulated by coordinators that share one fakeredis server but
carry different instance ids. An instance is "alive" when its liveness marker
exists and "dead" when it does not.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, patch

from assured_jobs.core.exceptions import RecoveryError, StoreError
from assured_jobs.jobs.recovery import RecoveryCoordinator
from assured_jobs.jobs.runtime import UniqueLockBackend

from tests.fixtures.sample_jobs import (
    FailingRuntime,
    RecordingRuntime,
    make_payload,
    seed_orphan,
)


class RecordingUniqueLocks(UniqueLockBackend):
    def __init__(self):
        self.cleared = []

    async def clear(self, digest: str) -> None:
        self.cleared.append(digest)


class BrokenUniqueLocks(UniqueLockBackend):
    async def clear(self, digest: str) -> None:
        raise ConnectionError("lock store unavailable")


async def all_keys(redis_client):
    return sorted([key async for key in redis_client.scan_iter(match="*")])


class TestOrphanRecovery:
    """Test jobs left behind by dead instances are resubmitted."""

    @pytest.mark.asyncio
    async def test_dead_instance_job_resubmitted(
        self, make_coordinator, store, runtime, redis_client
    ):
        """Test instance A crashed mid-job; B resubmits it once and cleans up."""
        job = make_payload("jid-1", args=[42])
        await seed_orphan(store, "instance-a", job)

        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert report.lock_acquired
        assert report.succeeded
        assert report.dead_instances == ["instance-a"]
        assert report.recovered_jids == ["jid-1"]
        assert runtime.enqueued == [job]
        assert await all_keys(redis_client) == []

    @pytest.mark.asyncio
    async def test_live_instance_job_untouched(
        self, make_coordinator, store, runtime
    ):
        """Test jobs of an instance with a fresh marker are not orphans."""
        await store.write_heartbeat("instance-a", 30)
        await seed_orphan(store, "instance-a", make_payload("jid-2"))

        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert report.lock_acquired
        assert report.recovered_count == 0
        assert report.dead_instances == []
        assert runtime.enqueued == []
        assert await store.is_tracked_by("instance-a", "jid-2")
        assert await store.get_payload("jid-2") is not None

    @pytest.mark.asyncio
    async def test_mixed_live_and_dead_instances(
        self, make_coordinator, store, runtime
    ):
        await store.write_heartbeat("instance-a", 30)
        await seed_orphan(store, "instance-a", make_payload("jid-live"))
        await seed_orphan(store, "instance-c", make_payload("jid-dead-1"))
        await seed_orphan(store, "instance-c", make_payload("jid-dead-2"))

        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert sorted(report.recovered_jids) == ["jid-dead-1", "jid-dead-2"]
        assert sorted(job["jid"] for job in runtime.enqueued) == [
            "jid-dead-1",
            "jid-dead-2",
        ]
        assert await store.tracked_job_ids("instance-a") == {"jid-live"}
        assert await store.tracked_count("instance-c") == 0

    @pytest.mark.asyncio
    async def test_no_dead_instances_is_noop(self, make_coordinator, runtime):
        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert report.lock_acquired
        assert report.succeeded
        assert report.recovered_count == 0
        assert runtime.enqueued == []

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, make_coordinator, store, runtime):
        """Test a second sweep finds nothing left to resubmit."""
        await seed_orphan(store, "instance-a", make_payload("jid-1"))
        coordinator = make_coordinator("instance-b")

        first = await coordinator.reenqueue_orphans()
        second = await coordinator.reenqueue_orphans()

        assert first.recovered_jids == ["jid-1"]
        assert second.recovered_jids == []
        assert len(runtime.enqueued) == 1

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_resubmit_once(
        self, make_coordinator, store, runtime
    ):
        """Test many instances sweeping at once resubmit each job exactly once."""
        for i in range(5):
            await seed_orphan(store, "instance-dead", make_payload(f"jid-{i}"))

        coordinators = [make_coordinator(f"instance-{n}") for n in range(6)]
        reports = await asyncio.gather(
            *(coordinator.reenqueue_orphans() for coordinator in coordinators)
        )

        assert sorted(job["jid"] for job in runtime.enqueued) == [
            f"jid-{i}" for i in range(5)
        ]
        recovered = [jid for report in reports for jid in report.recovered_jids]
        assert sorted(recovered) == [f"jid-{i}" for i in range(5)]
        assert await store.lock_holder() is None


class TestRecoveryLock:
    """Test cluster-wide mutual exclusion of sweeps."""

    @pytest.mark.asyncio
    async def test_skipped_when_lock_held(
        self, make_coordinator, store, runtime, config
    ):
        """Test instance C does nothing while B holds the lock."""
        await seed_orphan(store, "instance-a", make_payload("jid-1"))
        assert await store.acquire_lock("instance-b", config.recovery_lock_ttl)

        report = await make_coordinator("instance-c").reenqueue_orphans()

        assert report.lock_acquired is False
        assert report.error is None
        assert runtime.enqueued == []
        assert await store.is_tracked_by("instance-a", "jid-1")
        assert await store.get_payload("jid-1") is not None
        assert await store.lock_holder() == "instance-b"

    @pytest.mark.asyncio
    async def test_lock_released_after_sweep(self, make_coordinator, store):
        await seed_orphan(store, "instance-a", make_payload("jid-1"))

        await make_coordinator("instance-b").reenqueue_orphans()

        assert await store.lock_holder() is None

    @pytest.mark.asyncio
    async def test_lock_held_during_sweep(self, make_coordinator, store):
        """Test the lock names the sweeping instance while resubmitting."""
        seen = {}

        class PeekingRuntime(RecordingRuntime):
            async def enqueue(self, payload):
                seen["holder"] = await store.lock_holder()
                return await super().enqueue(payload)

        await seed_orphan(store, "instance-a", make_payload("jid-1"))

        await make_coordinator(
            "instance-b", job_runtime=PeekingRuntime()
        ).reenqueue_orphans()

        assert seen["holder"] == "instance-b"

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, make_coordinator, store):
        await seed_orphan(store, "instance-a", make_payload("jid-1"))

        report = await make_coordinator(
            "instance-b", job_runtime=FailingRuntime()
        ).reenqueue_orphans()

        assert report.error is not None
        assert await store.lock_holder() is None

    @pytest.mark.asyncio
    async def test_lock_has_ttl(self, make_coordinator, store, redis_client):
        coordinator = make_coordinator("instance-b")

        async with coordinator.recovery_lock() as acquired:
            assert acquired
            ttl = await redis_client.ttl(store.lock_key())
            assert 0 < ttl <= coordinator.config.recovery_lock_ttl

        assert await store.lock_holder() is None

    @pytest.mark.asyncio
    async def test_contended_lock_not_released(self, make_coordinator, store):
        """Test a coordinator that did not acquire the lock leaves it alone."""
        await store.acquire_lock("instance-b", 10)

        async with make_coordinator("instance-c").recovery_lock() as acquired:
            assert acquired is False

        assert await store.lock_holder() == "instance-b"


class TestRecoveryFailures:
    """Test sweeps survive bad data and unreachable collaborators."""

    @pytest.mark.asyncio
    async def test_enqueue_failure_restores_entry(self, make_coordinator, store):
        """Test a job that could not be resubmitted stays recoverable."""
        job = make_payload("jid-1")
        await seed_orphan(store, "instance-a", job)

        report = await make_coordinator(
            "instance-b", job_runtime=FailingRuntime()
        ).reenqueue_orphans()

        assert not report.succeeded
        assert "jid-1" in report.error
        assert report.recovered_jids == []
        assert await store.is_tracked_by("instance-a", "jid-1")
        assert json.loads(await store.get_payload("jid-1")) == job

    @pytest.mark.asyncio
    async def test_retry_after_enqueue_failure(
        self, make_coordinator, store, runtime
    ):
        await seed_orphan(store, "instance-a", make_payload("jid-1"))

        await make_coordinator(
            "instance-b", job_runtime=FailingRuntime()
        ).reenqueue_orphans()
        report = await make_coordinator("instance-c").reenqueue_orphans()

        assert report.recovered_jids == ["jid-1"]
        assert [job["jid"] for job in runtime.enqueued] == ["jid-1"]

    @pytest.mark.asyncio
    async def test_recover_job_raises_on_enqueue_failure(
        self, make_coordinator, store
    ):
        await seed_orphan(store, "instance-a", make_payload("jid-1"))
        coordinator = make_coordinator("instance-b", job_runtime=FailingRuntime())

        with pytest.raises(RecoveryError):
            await coordinator.recover_job("instance-a", "jid-1")

    @pytest.mark.asyncio
    async def test_missing_payload_dropped(
        self, make_coordinator, store, runtime, redis_client
    ):
        """Test a set member without a payload record is removed, not resubmitted."""
        await redis_client.sadd(store.jobs_key("instance-a"), "jid-ghost")

        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert report.succeeded
        assert report.recovered_jids == []
        assert runtime.enqueued == []
        assert await store.tracked_count("instance-a") == 0

    @pytest.mark.asyncio
    async def test_unparseable_payload_dropped(
        self, make_coordinator, store, runtime
    ):
        await store.track("instance-a", "jid-bad", "{not json")
        await seed_orphan(store, "instance-a", make_payload("jid-good"))

        report = await make_coordinator("instance-b").reenqueue_orphans()

        assert report.succeeded
        assert report.recovered_jids == ["jid-good"]
        assert [job["jid"] for job in runtime.enqueued] == ["jid-good"]
        assert await store.get_payload("jid-bad") is None
        assert await store.tracked_count("instance-a") == 0

    @pytest.mark.asyncio
    async def test_store_error_reported(self, make_coordinator):
        """Test store failures never escape the sweep."""
        coordinator = make_coordinator("instance-b")

        with patch.object(
            coordinator.store,
            "tracking_keys",
            new=AsyncMock(side_effect=StoreError("unreachable")),
        ):
            report = await coordinator.reenqueue_orphans()

        assert report.lock_acquired
        assert report.error == "unreachable"
        assert await coordinator.store.lock_holder() is None

    @pytest.mark.asyncio
    async def test_lock_store_unreachable(self, make_coordinator):
        coordinator = make_coordinator("instance-b")

        with patch.object(
            coordinator.store,
            "acquire_lock",
            new=AsyncMock(side_effect=StoreError("unreachable")),
        ):
            report = await coordinator.reenqueue_orphans()

        assert report.lock_acquired is False
        assert report.error == "unreachable"


class TestUniqueLocks:
    """Test uniqueness locks are cleared before resubmission."""

    @pytest.mark.asyncio
    async def test_digest_cleared(self, make_coordinator, store, runtime):
        await seed_orphan(
            store, "instance-a", make_payload("jid-1", unique_digest="uniq:abc")
        )
        locks = RecordingUniqueLocks()

        report = await make_coordinator(
            "instance-b", unique_locks=locks
        ).reenqueue_orphans()

        assert locks.cleared == ["uniq:abc"]
        assert report.recovered_jids == ["jid-1"]

    @pytest.mark.asyncio
    async def test_no_digest_no_clear(self, make_coordinator, store):
        await seed_orphan(store, "instance-a", make_payload("jid-1"))
        locks = RecordingUniqueLocks()

        await make_coordinator("instance-b", unique_locks=locks).reenqueue_orphans()

        assert locks.cleared == []

    @pytest.mark.asyncio
    async def test_clear_failure_still_resubmits(
        self, make_coordinator, store, runtime
    ):
        await seed_orphan(
            store, "instance-a", make_payload("jid-1", unique_digest="uniq:abc")
        )

        report = await make_coordinator(
            "instance-b", unique_locks=BrokenUniqueLocks()
        ).reenqueue_orphans()

        assert report.succeeded
        assert [job["jid"] for job in runtime.enqueued] == ["jid-1"]

    @pytest.mark.asyncio
    async def test_without_backend(self, config, store, runtime):
        coordinator = RecoveryCoordinator(config, store, runtime)

        cleared = await coordinator.clear_unique_lock(
            make_payload("jid-1", unique_digest="uniq:abc")
        )

        assert cleared is False


class TestNamespaces:
    """Test sweeps stay within, and fully cover, their own namespace."""

    @pytest.mark.asyncio
    async def test_bracketed_namespace_recovered(self, make_config, make_store, runtime):
        config = make_config("instance-b", namespace="billing[eu]")
        store = make_store("billing[eu]")
        await seed_orphan(store, "instance-a", make_payload("jid-1"))

        report = await RecoveryCoordinator(config, store, runtime).reenqueue_orphans()

        assert report.recovered_jids == ["jid-1"]
        assert await store.tracking_keys() == []
