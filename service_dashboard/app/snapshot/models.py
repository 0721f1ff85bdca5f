"""
Snapshot data models for the Dashboard Control service.
"""

from typing import List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..policy.models import ResolvedDashboard, VisibleSection, DenialReason


class ChecksumAlgorithm(str, Enum):
    """Digest used to seal a snapshot."""
    SHA256 = "sha256"
    ROLLING32 = "rolling32"


@dataclass(frozen=True)
class Snapshot:
    """A resolved dashboard sealed with a checksum and an optional expiry.

    Any field changed after creation makes the checksum stop matching.
    """
    dashboard_id: str
    subject_id: str
    tenant_id: str
    resolved: ResolvedDashboard
    created_at: datetime
    checksum: str
    expires_at: Optional[datetime] = None

    @property
    def evaluation_time(self) -> datetime:
        return self.resolved.evaluation_time

    @property
    def resolved_sections(self) -> Tuple[VisibleSection, ...]:
        return self.resolved.visible_sections

    @property
    def hidden_sections(self) -> Tuple[str, ...]:
        return self.resolved.hidden_sections

    @property
    def reasons(self) -> Tuple[DenialReason, ...]:
        return self.resolved.reasons


class SectionPayload(BaseModel):
    section_id: str
    label: str
    icon: Optional[str] = None
    children: List["SectionPayload"] = Field(default_factory=list)


class ReasonPayload(BaseModel):
    section_id: str
    kind: str
    details: str


class SnapshotPayload(BaseModel):
    """Transport shape of a snapshot. Timestamps stay in their canonical string form."""
    dashboard_id: str
    subject_id: str
    tenant_id: str
    resolved_sections: List[SectionPayload] = Field(default_factory=list)
    hidden_sections: List[str] = Field(default_factory=list)
    reasons: List[ReasonPayload] = Field(default_factory=list)
    evaluation_time: str
    created_at: str
    expires_at: Optional[str] = None
    checksum: str


class SnapshotCheckRequest(BaseModel):
    """Request model for verifying or evaluating a snapshot."""
    snapshot: SnapshotPayload
    now: datetime = Field(..., description="Instant to check expiry against")
