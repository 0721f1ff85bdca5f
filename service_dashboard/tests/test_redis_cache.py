"""
Unit tests for the Redis snapshot cache.
"""

import pytest
from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from shared.errors import CacheError
from service_dashboard.app.cache.redis_cache import SnapshotCache
from service_dashboard.app.policy.resolver import resolve_dashboard
from service_dashboard.app.snapshot.codec import SnapshotCodec


@pytest.fixture
def codec():
    return SnapshotCodec()


@pytest.fixture
def snapshot(codec, declaration, context, capabilities, entitlements, features):
    resolved = resolve_dashboard(declaration, context, capabilities, entitlements, features)
    return codec.generate("tenant-console", "admin-001", "tenant-1", resolved, ttl_seconds=600)


@pytest.fixture
def mock_redis():
    return AsyncMock()


@pytest.fixture
def cache(codec, mock_redis):
    """SnapshotCache wired to a mocked Redis client."""
    cache = SnapshotCache("redis://localhost:6379/0", codec)
    cache.redis = mock_redis
    return cache


class TestSnapshotCache:
    """Test cases for SnapshotCache."""

    def test_snapshot_key(self, cache):
        key = cache._get_snapshot_key("dash", "user-1", "tenant-1", "abc")

        assert key == "snapshot:dashboard:dash:subject:user-1:tenant:tenant-1:ctx:abc"

    def test_ttl_follows_snapshot_expiry(self, cache, snapshot, fixed_time):
        assert cache._calculate_ttl(snapshot, fixed_time) == 600
        assert cache._calculate_ttl(snapshot, fixed_time + timedelta(seconds=599, milliseconds=500)) == 1

    def test_ttl_for_expired_snapshot(self, cache, snapshot, fixed_time):
        assert cache._calculate_ttl(snapshot, fixed_time + timedelta(seconds=600)) is None

    def test_ttl_without_expiry_uses_default(self, cache, snapshot, fixed_time):
        assert cache._calculate_ttl(replace(snapshot, expires_at=None), fixed_time) == 3600

    def test_ttl_capped(self, cache, snapshot, fixed_time):
        far = replace(snapshot, expires_at=fixed_time + timedelta(days=30))

        assert cache._calculate_ttl(far, fixed_time) == 86400

    @pytest.mark.asyncio
    async def test_set_snapshot(self, cache, mock_redis, snapshot, fixed_time, codec):
        stored = await cache.set_snapshot(snapshot, "ctx-1", fixed_time)

        assert stored is True
        key, ttl, payload = mock_redis.setex.call_args[0]
        assert key == "snapshot:dashboard:tenant-console:subject:admin-001:tenant:tenant-1:ctx:ctx-1"
        assert ttl == 600
        assert codec.loads(payload) == snapshot

    @pytest.mark.asyncio
    async def test_set_expired_snapshot_skipped(self, cache, mock_redis, snapshot, fixed_time):
        stored = await cache.set_snapshot(snapshot, "ctx-1", fixed_time + timedelta(hours=1))

        assert stored is False
        mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_snapshot_error(self, cache, mock_redis, snapshot, fixed_time):
        mock_redis.setex.side_effect = ConnectionError("connection lost")

        assert await cache.set_snapshot(snapshot, "ctx-1", fixed_time) is False

    @pytest.mark.asyncio
    async def test_get_snapshot_hit(self, cache, mock_redis, snapshot, codec):
        mock_redis.get.return_value = codec.dumps(snapshot)

        cached = await cache.get_snapshot("tenant-console", "admin-001", "tenant-1", "ctx-1")

        assert cached == snapshot
        assert cached.checksum == snapshot.checksum

    @pytest.mark.asyncio
    async def test_get_snapshot_miss(self, cache, mock_redis):
        mock_redis.get.return_value = None

        assert await cache.get_snapshot("tenant-console", "admin-001", "tenant-1", "ctx-1") is None

    @pytest.mark.asyncio
    async def test_undecodable_snapshot_deleted(self, cache, mock_redis):
        mock_redis.get.return_value = "{broken"

        cached = await cache.get_snapshot("tenant-console", "admin-001", "tenant-1", "ctx-1")

        assert cached is None
        mock_redis.delete.assert_awaited_once_with(
            "snapshot:dashboard:tenant-console:subject:admin-001:tenant:tenant-1:ctx:ctx-1"
        )

    @pytest.mark.asyncio
    async def test_get_snapshot_error(self, cache, mock_redis):
        mock_redis.get.side_effect = ConnectionError("connection lost")

        assert await cache.get_snapshot("tenant-console", "admin-001", "tenant-1", "ctx-1") is None

    @pytest.mark.asyncio
    async def test_not_started(self, codec, snapshot, fixed_time):
        cache = SnapshotCache("redis://localhost:6379/0", codec)

        assert await cache.get_snapshot("tenant-console", "admin-001", "tenant-1", "ctx-1") is None
        assert await cache.set_snapshot(snapshot, "ctx-1", fixed_time) is False
        assert await cache.invalidate_subject_snapshots("admin-001") == 0
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_invalidate_subject(self, cache, mock_redis):
        mock_redis.keys.return_value = ["k1", "k2"]

        count = await cache.invalidate_subject_snapshots("admin-001")

        assert count == 2
        mock_redis.keys.assert_awaited_once_with("snapshot:*:subject:admin-001:*")
        mock_redis.delete.assert_awaited_once_with("k1", "k2")

    @pytest.mark.asyncio
    async def test_invalidate_tenant_no_keys(self, cache, mock_redis):
        mock_redis.keys.return_value = []

        assert await cache.invalidate_tenant_snapshots("tenant-1") == 0
        mock_redis.keys.assert_awaited_once_with("snapshot:*:tenant:tenant-1:*")
        mock_redis.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidate_dashboard(self, cache, mock_redis):
        mock_redis.keys.return_value = ["k1"]

        assert await cache.invalidate_dashboard_snapshots("tenant-console") == 1
        mock_redis.keys.assert_awaited_once_with("snapshot:dashboard:tenant-console:*")

    @pytest.mark.asyncio
    async def test_cache_stats(self, cache, mock_redis):
        mock_redis.info.return_value = {
            "redis_version": "7.2.0",
            "used_memory_human": "1M",
            "keyspace_hits": 3,
            "keyspace_misses": 1
        }
        mock_redis.keys.return_value = ["k1"]

        stats = await cache.get_cache_stats()

        assert stats["snapshot_keys"] == 1
        assert stats["hit_rate"] == 0.75

    def test_hit_rate_without_traffic(self, cache):
        assert cache._calculate_hit_rate({}) == 0.0

    @pytest.mark.asyncio
    async def test_health_check(self, cache, mock_redis):
        assert await cache.health_check() is True

        mock_redis.ping.side_effect = ConnectionError("down")
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_start_failure(self, codec):
        cache = SnapshotCache("redis://localhost:6379/0", codec)
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("refused")

        with patch("service_dashboard.app.cache.redis_cache.redis.from_url", return_value=client):
            with pytest.raises(CacheError) as exc_info:
                await cache.start()

        assert exc_info.value.code == "CACHE_UNAVAILABLE"
        assert exc_info.value.status_code == 503
        assert cache.redis is None

    @pytest.mark.asyncio
    async def test_stop(self, cache, mock_redis):
        await cache.stop()

        mock_redis.aclose.assert_awaited_once()
        assert cache.redis is None
