"""
Cache package for the Dashboard Control service.

Provides a Redis-backed store for sealed dashboard snapshots keyed by
dashboard, subject, tenant and a hash of the request context. Entries
expire with the snapshot they hold.
"""
