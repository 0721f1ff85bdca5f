"""
Dashboard Control service package.

Decides which sections of an administrative dashboard a subject may see
and seals that decision in a snapshot that can be cached or shipped to a
client and trusted later. It provides:

- app.main: API surface for resolution, snapshot verification and health.
- app.policy: Declaration model, contexts/facts, and the visibility resolver.
- app.snapshot: Canonical serialization, checksum, expiry and verification.
- app.presentation: UI projections and the built-in dashboard catalog.
- app.cache: Redis-backed snapshot cache.

Guidelines:
- The resolver and codec are pure: no clocks, no I/O, no shared state.
- Evaluation time is always supplied by the caller.
- A cached snapshot is re-verified before every use.
"""
