"""
Dashboard control service.
"""

import hashlib
import json
import time
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Tuple

from fastapi import Query, Body
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.errors import CacheError, NotFoundError, ValidationError
from shared.logging import set_subject_context

from .cache.redis_cache import SnapshotCache
from .policy.models import ResolvedDashboard
from .policy.resolver import VisibilityResolver
from .presentation.adapter import adapt_all, to_ui_dashboard, snapshot_to_ui_dashboard
from .presentation.catalog import build_catalog
from .presentation.models import PresentationMetadata, UiDashboardContext, UiResolvedDashboard
from .snapshot.codec import SnapshotCodec, as_utc
from .snapshot.models import Snapshot, SnapshotPayload, SnapshotCheckRequest


class ResolveResponse(BaseModel):
    """Response model for dashboard resolution."""
    dashboard: UiResolvedDashboard
    snapshot: SnapshotPayload
    cache_hit: bool = False


class VerifyResponse(BaseModel):
    valid: bool


class EvaluateResponse(BaseModel):
    """``dashboard`` is None when the snapshot is tampered or expired."""
    valid: bool
    dashboard: Optional[UiResolvedDashboard] = None


def context_fingerprint(ui_context: UiDashboardContext, ttl_seconds: Optional[int] = None) -> str:
    """Hash of everything in a request that shapes the snapshot, except the instant."""
    context_str = json.dumps({
        "ttl_seconds": ttl_seconds,
        "user_id": ui_context.user_id,
        "subject_type": ui_context.subject_type.value,
        "roles": sorted(set(ui_context.roles)),
        "tenant_id": ui_context.tenant_id,
        "partner_id": ui_context.partner_id,
        "permissions": sorted(f"{p.id}:{p.granted}" for p in ui_context.permissions),
        "entitlements": sorted(f"{e.id}:{e.active}" for e in ui_context.entitlements),
        "feature_flags": sorted(f"{f.id}:{f.enabled}" for f in ui_context.feature_flags),
    }, sort_keys=True)
    return hashlib.sha256(context_str.encode()).hexdigest()


class DashboardService(BaseService):
    """Dashboard control service implementation."""

    def __init__(self, catalog: Optional[Dict[str, PresentationMetadata]] = None):
        super().__init__("dashboard", 8013)

        self.catalog = catalog if catalog is not None else build_catalog()
        self.resolver = VisibilityResolver()
        self.codec = SnapshotCodec(self.config.checksum_algorithm)
        self.cache = SnapshotCache(self.config.redis_url, self.codec)

        self._setup_dashboard_routes()

    def _get_metadata(self, dashboard_id: str) -> PresentationMetadata:
        metadata = self.catalog.get(dashboard_id)
        if metadata is None:
            raise NotFoundError(f"Unknown dashboard '{dashboard_id}'", {"dashboard_id": dashboard_id})
        return metadata

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        if ttl_seconds is None:
            return self.config.snapshot_ttl_seconds
        if ttl_seconds > self.config.max_snapshot_ttl_seconds:
            raise ValidationError(
                "Snapshot ttl exceeds the configured maximum",
                {"ttl_seconds": ttl_seconds, "max_ttl_seconds": self.config.max_snapshot_ttl_seconds}
            )
        return ttl_seconds

    def _record_resolution(self, resolved: ResolvedDashboard, cache_hit: bool):
        if resolved.visible_sections:
            outcome = "partial" if resolved.hidden_sections else "full"
        else:
            outcome = "denied"
        self.metrics.increment_counter(
            "dashboard_resolutions_total",
            dashboard_id=resolved.dashboard_id,
            outcome=outcome
        )
        self.metrics.increment_counter("snapshot_cache_total", result="hit" if cache_hit else "miss")
        if not cache_hit:
            for reason in resolved.reasons:
                self.metrics.increment_counter("dashboard_denials_total", kind=reason.kind.value)

    def _serves_request(self, cached: Snapshot, evaluation_time: datetime, ttl_seconds: int) -> bool:
        """A cached snapshot answers only a request for the same instant and lifetime."""
        evaluation_time = as_utc(evaluation_time)
        if cached.expires_at is None or as_utc(cached.evaluation_time) != evaluation_time:
            return False
        if as_utc(cached.expires_at) != evaluation_time + timedelta(seconds=ttl_seconds):
            return False
        return self.codec.evaluate(cached, evaluation_time) is not None

    async def resolve_snapshot(
        self,
        metadata: PresentationMetadata,
        ui_context: UiDashboardContext,
        ttl_seconds: int
    ) -> Tuple[Snapshot, bool]:
        """Serve the cached snapshot for this instant and ttl, otherwise resolve and seal a new one."""
        declaration = metadata.declaration
        context, capabilities, entitlements, features = adapt_all(ui_context)
        fingerprint = context_fingerprint(ui_context, ttl_seconds)

        if self.config.snapshot_cache_enabled:
            cached = await self.cache.get_snapshot(
                declaration.dashboard_id, context.subject_id, context.tenant_id, fingerprint
            )
            if cached is not None and self._serves_request(cached, context.evaluation_time, ttl_seconds):
                return cached, True

        with self.metrics.time_operation(
            "dashboard_resolution_duration_seconds", dashboard_id=declaration.dashboard_id
        ):
            resolved = self.resolver.resolve(declaration, context, capabilities, entitlements, features)

        snapshot = self.codec.generate(
            declaration.dashboard_id, context.subject_id, context.tenant_id, resolved, ttl_seconds
        )

        if self.config.snapshot_cache_enabled:
            await self.cache.set_snapshot(snapshot, fingerprint, context.evaluation_time)

        return snapshot, False

    def _decode(self, payload: SnapshotPayload) -> Snapshot:
        return self.codec.from_dict(payload.model_dump())

    def _setup_dashboard_routes(self):
        """Set up dashboard-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "dashboard",
                "message": "Dashboard Control - Dashboard Service",
                "version": "1.0.0",
                "capabilities": ["visibility_resolver", "snapshots", "caching"]
            }

        @self.app.get("/dashboards")
        async def list_dashboards():
            """List declared dashboards."""
            return {
                "dashboards": [
                    {
                        "dashboard_id": dashboard_id,
                        "label": metadata.declaration.label,
                        "sections": len(metadata.declaration.section_ids())
                    }
                    for dashboard_id, metadata in sorted(self.catalog.items())
                ]
            }

        @self.app.post("/dashboards/{dashboard_id}/resolve", response_model=ResolveResponse)
        async def resolve_dashboard(
            dashboard_id: str,
            ui_context: UiDashboardContext = Body(...),
            ttl_seconds: Optional[int] = Query(None, ge=0, description="Snapshot time-to-live"),
            diagnostic: bool = Query(False, description="Include hidden sections and reasons")
        ):
            """Resolve a dashboard for the supplied context and seal the result."""
            metadata = self._get_metadata(dashboard_id)
            ttl = self._resolve_ttl(ttl_seconds)
            set_subject_context(ui_context.user_id, ui_context.tenant_id, dashboard_id)

            start_time = time.time()
            snapshot, cache_hit = await self.resolve_snapshot(metadata, ui_context, ttl)
            self._record_resolution(snapshot.resolved, cache_hit)

            self.logger.info(
                "Dashboard resolved",
                dashboard_id=dashboard_id,
                subject_id=ui_context.user_id,
                visible=len(snapshot.resolved.visible_section_ids()),
                hidden=len(snapshot.hidden_sections),
                cache_hit=cache_hit,
                duration_ms=round((time.time() - start_time) * 1000, 2)
            )

            return ResolveResponse(
                dashboard=snapshot_to_ui_dashboard(snapshot, metadata, diagnostic=diagnostic),
                snapshot=SnapshotPayload(**self.codec.to_dict(snapshot)),
                cache_hit=cache_hit
            )

        @self.app.post("/snapshots/verify", response_model=VerifyResponse)
        async def verify_snapshot(request: SnapshotCheckRequest):
            """Verify a snapshot's checksum and expiry."""
            valid = self.codec.verify(self._decode(request.snapshot), request.now)
            self.metrics.increment_counter("snapshot_verifications_total", result="valid" if valid else "invalid")
            return VerifyResponse(valid=valid)

        @self.app.post("/snapshots/evaluate", response_model=EvaluateResponse)
        async def evaluate_snapshot(
            request: SnapshotCheckRequest,
            diagnostic: bool = Query(False, description="Include hidden sections and reasons")
        ):
            """Return the dashboard sealed in a snapshot if it is still valid."""
            snapshot = self._decode(request.snapshot)
            metadata = self._get_metadata(snapshot.dashboard_id)

            resolved = self.codec.evaluate(snapshot, request.now)
            self.metrics.increment_counter(
                "snapshot_verifications_total", result="valid" if resolved is not None else "invalid"
            )
            if resolved is None:
                return EvaluateResponse(valid=False)

            return EvaluateResponse(
                valid=True,
                dashboard=to_ui_dashboard(resolved, metadata, checksum=snapshot.checksum, diagnostic=diagnostic)
            )

        @self.app.delete("/snapshots/subjects/{subject_id}")
        async def invalidate_subject(subject_id: str):
            """Drop cached snapshots for a subject."""
            return {"invalidated": await self.cache.invalidate_subject_snapshots(subject_id)}

        @self.app.delete("/snapshots/tenants/{tenant_id}")
        async def invalidate_tenant(tenant_id: str):
            """Drop cached snapshots for a tenant."""
            return {"invalidated": await self.cache.invalidate_tenant_snapshots(tenant_id)}

        @self.app.delete("/snapshots/dashboards/{dashboard_id}")
        async def invalidate_dashboard(dashboard_id: str):
            """Drop cached snapshots of a dashboard, e.g. after its declaration changes."""
            return {"invalidated": await self.cache.invalidate_dashboard_snapshots(dashboard_id)}

        @self.app.get("/snapshots/cache/stats")
        async def cache_stats():
            """Redis snapshot cache statistics; empty when the cache is not running."""
            return {"enabled": self.config.snapshot_cache_enabled, "stats": await self.cache.get_cache_stats()}

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Check dashboard service dependencies."""
        dependencies = {}

        if self.config.snapshot_cache_enabled:
            dependencies["redis"] = "ok" if await self.cache.health_check() else "error"

        return dependencies

    async def start(self):
        """Start dashboard service components."""
        if self.config.snapshot_cache_enabled:
            try:
                await self.cache.start()
            except CacheError as e:
                self.logger.warning("Snapshot cache unavailable, resolving without it", error=e.message)

        self.logger.info("Dashboard service started", dashboards=sorted(self.catalog))

    async def stop(self):
        """Stop dashboard service components."""
        await self.cache.stop()
        self.logger.info("Dashboard service stopped")


def create_app():
    """Create dashboard service application."""
    service = DashboardService()
    return service.app


if __name__ == "__main__":
    service = DashboardService()
    service.run()
