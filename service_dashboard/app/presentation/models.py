"""
Presentation data models for the Dashboard Control service.
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

from ..policy.models import DashboardDeclaration, SubjectType


@dataclass(frozen=True)
class SectionGroup:
    """Navigation group of top-level sections."""
    group_id: str
    title: str
    order: int
    section_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "section_ids", tuple(self.section_ids))


@dataclass(frozen=True)
class PresentationMetadata:
    """Static UI metadata for one dashboard declaration."""
    declaration: DashboardDeclaration
    descriptions: Dict[str, str] = field(default_factory=dict)
    groups: Tuple[SectionGroup, ...] = ()
    default_icon: str = "📄"
    default_group: str = "core"

    def __post_init__(self):
        object.__setattr__(self, "descriptions", dict(self.descriptions))
        object.__setattr__(self, "groups", tuple(sorted(self.groups, key=lambda g: g.order)))


class Permission(BaseModel):
    id: str
    granted: bool


class Entitlement(BaseModel):
    id: str
    active: bool


class FeatureFlag(BaseModel):
    id: str
    enabled: bool


class UiDashboardContext(BaseModel):
    """Caller-supplied context as the UI layer sees it."""
    user_id: str = Field(..., description="Subject ID")
    subject_type: SubjectType = Field(SubjectType.SUPER_ADMIN, description="Subject type")
    roles: List[str] = Field(default_factory=list, description="Role names")
    tenant_id: str = Field(..., description="Tenant ID")
    partner_id: Optional[str] = Field(None, description="Partner ID")
    evaluation_time: datetime = Field(..., description="Instant the decision is made for")
    permissions: List[Permission] = Field(default_factory=list)
    entitlements: List[Entitlement] = Field(default_factory=list)
    feature_flags: List[FeatureFlag] = Field(default_factory=list)


class UiDashboardSection(BaseModel):
    id: str
    title: str
    description: str
    group: str
    icon: str
    visible: bool
    hidden_reason: Optional[str] = None
    order: int
    parent_id: Optional[str] = None
    depth: int = 0


class UiSectionGroup(BaseModel):
    id: str
    title: str
    order: int


class UiDenialReason(BaseModel):
    section_id: str
    kind: str
    details: str


class UiResolvedDashboard(BaseModel):
    """UI-facing projection of a resolved dashboard."""
    dashboard_id: str
    sections: List[UiDashboardSection]
    groups: List[UiSectionGroup]
    resolved_at: str
    context_hash: Optional[str] = None
    hidden_sections: Optional[List[str]] = Field(None, description="Diagnostic mode only")
    reasons: Optional[List[UiDenialReason]] = Field(None, description="Diagnostic mode only")
