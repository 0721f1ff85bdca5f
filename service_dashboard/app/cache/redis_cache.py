"""
Redis snapshot cache for the Dashboard Control service.

Cached snapshots are never trusted as-is: callers re-verify them with the
codec before use, so this layer only has to store and expire them.
"""

import math
from typing import Dict, Any, Optional
from datetime import datetime

import redis.asyncio as redis
from shared.logging import get_logger
from shared.errors import CacheError, SnapshotError
from ..snapshot.codec import SnapshotCodec, as_utc
from ..snapshot.models import Snapshot


class SnapshotCache:
    """Redis caching layer for dashboard snapshots."""

    SNAPSHOT_PREFIX = "snapshot:"

    def __init__(self, redis_url: str, codec: Optional[SnapshotCodec] = None):
        self.redis_url = redis_url
        self.codec = codec or SnapshotCodec()
        self.logger = get_logger("dashboard.cache.redis")
        self.redis: Optional[redis.Redis] = None

        self.default_ttl = 3600
        self.max_ttl = 86400
        self.min_ttl = 1

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis snapshot cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis snapshot cache", error=str(e))
            self.redis = None
            raise CacheError("Failed to connect to Redis", {"error": str(e)}) from e

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis snapshot cache stopped")

    async def get_snapshot(
        self,
        dashboard_id: str,
        subject_id: str,
        tenant_id: str,
        context_hash: str
    ) -> Optional[Snapshot]:
        """Get a cached snapshot. Misses, errors and bad payloads all return None."""
        if self.redis is None:
            return None

        cache_key = self._get_snapshot_key(dashboard_id, subject_id, tenant_id, context_hash)
        try:
            cached_data = await self.redis.get(cache_key)
            if not cached_data:
                return None

            try:
                snapshot = self.codec.loads(cached_data)
            except SnapshotError as e:
                self.logger.warning("Dropping undecodable cached snapshot", cache_key=cache_key, error=e.message)
                await self.redis.delete(cache_key)
                return None

            self.logger.debug("Cache hit for snapshot", cache_key=cache_key)
            return snapshot

        except Exception as e:
            self.logger.error("Error getting cached snapshot", error=str(e))
            return None

    async def set_snapshot(self, snapshot: Snapshot, context_hash: str, now: datetime) -> bool:
        """Cache a snapshot until it expires. Already-expired snapshots are not stored."""
        if self.redis is None:
            return False

        ttl_seconds = self._calculate_ttl(snapshot, now)
        if ttl_seconds is None:
            return False

        cache_key = self._get_snapshot_key(
            snapshot.dashboard_id, snapshot.subject_id, snapshot.tenant_id, context_hash
        )
        try:
            await self.redis.setex(cache_key, ttl_seconds, self.codec.dumps(snapshot))
            self.logger.debug("Cached snapshot", cache_key=cache_key, ttl=ttl_seconds)
            return True

        except Exception as e:
            self.logger.error("Error caching snapshot", error=str(e))
            return False

    async def invalidate_subject_snapshots(self, subject_id: str) -> int:
        """Invalidate all cached snapshots for a subject."""
        return await self._invalidate(f"{self.SNAPSHOT_PREFIX}*:subject:{subject_id}:*", subject_id=subject_id)

    async def invalidate_tenant_snapshots(self, tenant_id: str) -> int:
        """Invalidate all cached snapshots for a tenant."""
        return await self._invalidate(f"{self.SNAPSHOT_PREFIX}*:tenant:{tenant_id}:*", tenant_id=tenant_id)

    async def invalidate_dashboard_snapshots(self, dashboard_id: str) -> int:
        """Invalidate all cached snapshots of one dashboard."""
        return await self._invalidate(f"{self.SNAPSHOT_PREFIX}dashboard:{dashboard_id}:*", dashboard_id=dashboard_id)

    async def _invalidate(self, pattern: str, **log_fields) -> int:
        if self.redis is None:
            return 0
        try:
            keys = await self.redis.keys(pattern)
            if keys:
                await self.redis.delete(*keys)
                self.logger.info("Invalidated snapshots", count=len(keys), **log_fields)
                return len(keys)
            return 0

        except Exception as e:
            self.logger.error("Error invalidating snapshots", error=str(e), **log_fields)
            return 0

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        if self.redis is None:
            return {}
        try:
            info = await self.redis.info()
            snapshot_keys = await self.redis.keys(f"{self.SNAPSHOT_PREFIX}*")

            return {
                "redis_version": info.get("redis_version"),
                "used_memory": info.get("used_memory_human"),
                "keyspace_hits": info.get("keyspace_hits"),
                "keyspace_misses": info.get("keyspace_misses"),
                "snapshot_keys": len(snapshot_keys),
                "hit_rate": self._calculate_hit_rate(info)
            }

        except Exception as e:
            self.logger.error("Error getting cache stats", error=str(e))
            return {}

    def _get_snapshot_key(
        self,
        dashboard_id: str,
        subject_id: str,
        tenant_id: str,
        context_hash: str
    ) -> str:
        """Generate cache key for a snapshot."""
        return (
            f"{self.SNAPSHOT_PREFIX}dashboard:{dashboard_id}:subject:{subject_id}"
            f":tenant:{tenant_id}:ctx:{context_hash}"
        )

    def _calculate_ttl(self, snapshot: Snapshot, now: datetime) -> Optional[int]:
        """Seconds until the snapshot expires, bounded; None if already expired."""
        if snapshot.expires_at is None:
            return self.default_ttl

        remaining = (as_utc(snapshot.expires_at) - as_utc(now)).total_seconds()
        if remaining <= 0:
            return None

        return max(self.min_ttl, min(self.max_ttl, math.ceil(remaining)))

    def _calculate_hit_rate(self, info: Dict[str, Any]) -> float:
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        total = hits + misses

        if total == 0:
            return 0.0

        return hits / total

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
