"""
Presentation adapter for the Dashboard Control service.

Maps between the canonical policy/snapshot shapes and the UI-facing
shapes. It only projects: visibility, hidden reasons and checksums all
come from the resolver and the codec unchanged.
"""

from typing import Dict, List, Optional, Tuple

from shared.errors import ValidationError

from ..policy.models import (
    ResolvedDashboard, EvaluationContext, CapabilityFacts,
    EntitlementFacts, FeatureFacts
)
from ..snapshot.codec import format_timestamp
from ..snapshot.models import Snapshot
from .models import (
    PresentationMetadata, UiDashboardContext, UiDashboardSection,
    UiSectionGroup, UiResolvedDashboard, UiDenialReason
)


def adapt_context(ui_context: UiDashboardContext) -> EvaluationContext:
    roles = ui_context.roles or [ui_context.subject_type.value]
    return EvaluationContext(
        subject_id=ui_context.user_id,
        subject_type=ui_context.subject_type,
        tenant_id=ui_context.tenant_id,
        partner_id=ui_context.partner_id,
        roles=tuple(roles),
        evaluation_time=ui_context.evaluation_time
    )


def adapt_capabilities(ui_context: UiDashboardContext) -> CapabilityFacts:
    return CapabilityFacts(
        subject_id=ui_context.user_id,
        granted=frozenset(p.id for p in ui_context.permissions if p.granted),
        denied=frozenset(p.id for p in ui_context.permissions if not p.granted)
    )


def adapt_entitlements(ui_context: UiDashboardContext) -> EntitlementFacts:
    return EntitlementFacts(
        tenant_id=ui_context.tenant_id,
        active=frozenset(e.id for e in ui_context.entitlements if e.active),
        expired=frozenset(e.id for e in ui_context.entitlements if not e.active)
    )


def adapt_features(ui_context: UiDashboardContext) -> FeatureFacts:
    return FeatureFacts(
        enabled=frozenset(f.id for f in ui_context.feature_flags if f.enabled),
        disabled=frozenset(f.id for f in ui_context.feature_flags if not f.enabled)
    )


def adapt_all(
    ui_context: UiDashboardContext
) -> Tuple[EvaluationContext, CapabilityFacts, EntitlementFacts, FeatureFacts]:
    """All four resolver inputs, in resolver argument order."""
    return (
        adapt_context(ui_context),
        adapt_capabilities(ui_context),
        adapt_entitlements(ui_context),
        adapt_features(ui_context),
    )


def _group_lookup(metadata: PresentationMetadata) -> Dict[str, str]:
    lookup = {}
    for group in metadata.groups:
        for section_id in group.section_ids:
            lookup.setdefault(section_id, group.group_id)
    return lookup


def to_ui_dashboard(
    resolved: ResolvedDashboard,
    metadata: PresentationMetadata,
    checksum: Optional[str] = None,
    diagnostic: bool = False
) -> UiResolvedDashboard:
    """Project ``resolved`` onto every declared section, in declared order.

    Sections nested under a hidden parent come out with ``visible=False``
    and no reason of their own.
    """
    if metadata.declaration.dashboard_id != resolved.dashboard_id:
        raise ValidationError(
            "Presentation metadata does not describe the resolved dashboard",
            {"dashboard_id": resolved.dashboard_id, "metadata_dashboard_id": metadata.declaration.dashboard_id}
        )

    visible_ids = set(resolved.visible_section_ids())
    hidden_ids = set(resolved.hidden_sections)
    reason_details = {}
    for reason in resolved.reasons:
        reason_details.setdefault(reason.section_id, reason.details)
    dashboard_reason = reason_details.get(resolved.dashboard_id)

    groups = _group_lookup(metadata)
    section_groups: Dict[str, str] = {}

    sections: List[UiDashboardSection] = []
    for index, (section, parent_id, depth) in enumerate(metadata.declaration.iter_sections(), start=1):
        section_id = section.section_id

        # Nested sections sit in their parent's group unless listed explicitly.
        group = groups.get(section_id)
        if group is None:
            group = section_groups.get(parent_id, metadata.default_group) if parent_id else metadata.default_group
        section_groups[section_id] = group

        hidden_reason = reason_details.get(section_id)
        if hidden_reason is None and section_id in hidden_ids:
            hidden_reason = dashboard_reason

        sections.append(UiDashboardSection(
            id=section_id,
            title=section.label,
            description=metadata.descriptions.get(section_id, ""),
            group=group,
            icon=section.icon or metadata.default_icon,
            visible=section_id in visible_ids,
            hidden_reason=hidden_reason,
            order=index,
            parent_id=parent_id,
            depth=depth
        ))

    ui_dashboard = UiResolvedDashboard(
        dashboard_id=resolved.dashboard_id,
        sections=sorted(sections, key=lambda s: s.order),
        groups=[
            UiSectionGroup(id=g.group_id, title=g.title, order=g.order)
            for g in metadata.groups
        ],
        resolved_at=format_timestamp(resolved.evaluation_time),
        context_hash=checksum
    )

    if diagnostic:
        ui_dashboard.hidden_sections = list(resolved.hidden_sections)
        ui_dashboard.reasons = [
            UiDenialReason(section_id=r.section_id, kind=r.kind.value, details=r.details)
            for r in resolved.reasons
        ]

    return ui_dashboard


def snapshot_to_ui_dashboard(
    snapshot: Snapshot,
    metadata: PresentationMetadata,
    diagnostic: bool = False
) -> UiResolvedDashboard:
    """Project a snapshot's embedded result, using its checksum as context hash."""
    return to_ui_dashboard(snapshot.resolved, metadata, checksum=snapshot.checksum, diagnostic=diagnostic)
