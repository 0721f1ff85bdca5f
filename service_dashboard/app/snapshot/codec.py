"""
Snapshot codec for the Dashboard Control service.

Turns a ResolvedDashboard into a sealed Snapshot and back. The checksum is
computed over a canonical string: fixed field order, resolver order for
every array, compact JSON and fixed-precision UTC timestamps. Nothing here
reads a clock; callers pass ``now`` explicitly.
"""

import hashlib
import hmac
import json
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from shared.errors import SnapshotError
from shared.logging import get_logger
from ..policy.models import ResolvedDashboard, VisibleSection, DenialReason
from .models import Snapshot, ChecksumAlgorithm


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(value))


def rolling_hash32(data: str) -> str:
    """Fast 32-bit rolling hash over UTF-16 code units (``h = h * 31 + c``)."""
    encoded = data.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return format(abs(value), "x")


def compute_checksum(canonical: str, algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256) -> str:
    """Hex digest of a canonical string."""
    algorithm = ChecksumAlgorithm(algorithm)
    if algorithm == ChecksumAlgorithm.ROLLING32:
        return rolling_hash32(canonical)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def section_to_dict(section: VisibleSection) -> Dict[str, Any]:
    return {
        "section_id": section.section_id,
        "label": section.label,
        "icon": section.icon,
        "children": [section_to_dict(child) for child in section.children],
    }


def section_from_dict(data: Dict[str, Any]) -> VisibleSection:
    return VisibleSection(
        section_id=data["section_id"],
        label=data["label"],
        icon=data.get("icon"),
        children=tuple(section_from_dict(child) for child in data.get("children") or ()),
    )


def reason_to_dict(reason: DenialReason) -> Dict[str, Any]:
    return {
        "section_id": reason.section_id,
        "kind": reason.kind.value,
        "details": reason.details,
    }


def canonical_payload(
    dashboard_id: str,
    subject_id: str,
    tenant_id: str,
    resolved: ResolvedDashboard,
    created_at: datetime,
    expires_at: Optional[datetime]
) -> Dict[str, Any]:
    """Identity-relevant fields in their fixed canonical order."""
    return {
        "dashboard_id": dashboard_id,
        "subject_id": subject_id,
        "tenant_id": tenant_id,
        "resolved_sections": [section_to_dict(s) for s in resolved.visible_sections],
        "hidden_sections": list(resolved.hidden_sections),
        "reasons": [reason_to_dict(r) for r in resolved.reasons],
        "evaluation_time": format_timestamp(resolved.evaluation_time),
        "created_at": format_timestamp(created_at),
        "expires_at": format_timestamp(expires_at),
    }


def canonical_string(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, sort_keys=False)


class SnapshotCodec:
    """Generates, verifies and (de)serializes dashboard snapshots."""

    def __init__(self, algorithm: Union[ChecksumAlgorithm, str] = ChecksumAlgorithm.SHA256):
        self.algorithm = ChecksumAlgorithm(algorithm)
        self.logger = get_logger("dashboard.snapshot")

    def generate(
        self,
        dashboard_id: str,
        subject_id: str,
        tenant_id: str,
        resolved: ResolvedDashboard,
        ttl_seconds: Optional[float] = None
    ) -> Snapshot:
        """Seal ``resolved``. Without a ttl the snapshot never expires by time."""
        if dashboard_id != resolved.dashboard_id:
            raise SnapshotError(
                "Snapshot dashboard id does not match the resolved dashboard",
                {"dashboard_id": dashboard_id, "resolved_dashboard_id": resolved.dashboard_id}
            )
        if ttl_seconds is not None and not (isinstance(ttl_seconds, (int, float)) and math.isfinite(ttl_seconds)):
            raise SnapshotError("Snapshot ttl must be a finite number", {"ttl_seconds": str(ttl_seconds)})
        if ttl_seconds is not None and ttl_seconds < 0:
            raise SnapshotError("Snapshot ttl must not be negative", {"ttl_seconds": ttl_seconds})

        created_at = as_utc(resolved.evaluation_time)
        expires_at = None
        if ttl_seconds is not None:
            try:
                expires_at = created_at + timedelta(seconds=ttl_seconds)
            except OverflowError as e:
                raise SnapshotError("Snapshot ttl is out of range", {"ttl_seconds": ttl_seconds}) from e

        payload = canonical_payload(dashboard_id, subject_id, tenant_id, resolved, created_at, expires_at)
        checksum = compute_checksum(canonical_string(payload), self.algorithm)

        self.logger.debug(
            "Snapshot generated",
            dashboard_id=dashboard_id,
            subject_id=subject_id,
            tenant_id=tenant_id,
            expires_at=payload["expires_at"]
        )

        return Snapshot(
            dashboard_id=dashboard_id,
            subject_id=subject_id,
            tenant_id=tenant_id,
            resolved=resolved,
            created_at=created_at,
            checksum=checksum,
            expires_at=expires_at
        )

    def recompute_checksum(self, snapshot: Snapshot) -> str:
        payload = canonical_payload(
            snapshot.dashboard_id,
            snapshot.subject_id,
            snapshot.tenant_id,
            snapshot.resolved,
            snapshot.created_at,
            snapshot.expires_at
        )
        return compute_checksum(canonical_string(payload), self.algorithm)

    def verify(self, snapshot: Snapshot, now: datetime) -> bool:
        """Checksum first, then expiry. Never raises."""
        try:
            if snapshot.dashboard_id != snapshot.resolved.dashboard_id:
                self.logger.warning("Snapshot dashboard id mismatch", dashboard_id=snapshot.dashboard_id)
                return False

            expected = self.recompute_checksum(snapshot)
            if not hmac.compare_digest(expected, str(snapshot.checksum)):
                self.logger.warning(
                    "Snapshot checksum mismatch",
                    dashboard_id=snapshot.dashboard_id,
                    subject_id=snapshot.subject_id
                )
                return False

            if snapshot.expires_at is not None and as_utc(now) > as_utc(snapshot.expires_at):
                self.logger.info(
                    "Snapshot expired",
                    dashboard_id=snapshot.dashboard_id,
                    expires_at=format_timestamp(snapshot.expires_at)
                )
                return False

            return True

        except (AttributeError, TypeError, ValueError) as e:
            self.logger.warning("Snapshot could not be verified", error=str(e))
            return False

    def evaluate(self, snapshot: Snapshot, now: datetime) -> Optional[ResolvedDashboard]:
        """The embedded result if the snapshot verifies at ``now``, else None."""
        if not self.verify(snapshot, now):
            return None
        return snapshot.resolved

    def to_dict(self, snapshot: Snapshot) -> Dict[str, Any]:
        """Transport shape. Keeps every field read by verify/evaluate."""
        return {
            "dashboard_id": snapshot.dashboard_id,
            "subject_id": snapshot.subject_id,
            "tenant_id": snapshot.tenant_id,
            "resolved_sections": [section_to_dict(s) for s in snapshot.resolved_sections],
            "hidden_sections": list(snapshot.hidden_sections),
            "reasons": [reason_to_dict(r) for r in snapshot.reasons],
            "evaluation_time": format_timestamp(snapshot.evaluation_time),
            "created_at": format_timestamp(snapshot.created_at),
            "expires_at": format_timestamp(snapshot.expires_at),
            "checksum": snapshot.checksum,
        }

    def from_dict(self, data: Dict[str, Any]) -> Snapshot:
        """Rebuild a snapshot from its transport shape. Does not verify it."""
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot payload must be an object", {"type": type(data).__name__})
        try:
            reasons: List[DenialReason] = [
                DenialReason(r["section_id"], r["kind"], r["details"])
                for r in data.get("reasons") or ()
            ]
            resolved = ResolvedDashboard(
                dashboard_id=data["dashboard_id"],
                evaluation_time=parse_timestamp(data["evaluation_time"]),
                visible_sections=tuple(section_from_dict(s) for s in data.get("resolved_sections") or ()),
                hidden_sections=tuple(data.get("hidden_sections") or ()),
                reasons=tuple(reasons)
            )
            return Snapshot(
                dashboard_id=data["dashboard_id"],
                subject_id=data["subject_id"],
                tenant_id=data["tenant_id"],
                resolved=resolved,
                created_at=parse_timestamp(data.get("created_at") or data["evaluation_time"]),
                checksum=data["checksum"],
                expires_at=parse_timestamp(data.get("expires_at"))
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError("Malformed snapshot payload", {"error": str(e)}) from e

    def dumps(self, snapshot: Snapshot) -> str:
        return json.dumps(self.to_dict(snapshot), ensure_ascii=False)

    def loads(self, raw: str) -> Snapshot:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotError("Snapshot payload is not valid JSON", {"error": str(e)}) from e
        return self.from_dict(data)


_default_codec = SnapshotCodec()


def generate_snapshot(
    dashboard_id: str,
    subject_id: str,
    tenant_id: str,
    resolved: ResolvedDashboard,
    ttl_seconds: Optional[float] = None
) -> Snapshot:
    return _default_codec.generate(dashboard_id, subject_id, tenant_id, resolved, ttl_seconds)


def verify_snapshot(snapshot: Snapshot, now: datetime) -> bool:
    return _default_codec.verify(snapshot, now)


def evaluate_from_snapshot(snapshot: Snapshot, now: datetime) -> Optional[ResolvedDashboard]:
    return _default_codec.evaluate(snapshot, now)


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    return _default_codec.to_dict(snapshot)


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    return _default_codec.from_dict(data)
