"""
Snapshot package.

Seals a resolved dashboard so it can be cached or shipped to a client
and trusted later without re-running the resolver.

Modules of interest:
- models: Snapshot value object and checksum algorithms.
- codec: Canonical serialization, checksum, expiry, verification and
  the dict/JSON transport shape.
"""
