"""
Visibility resolver for the Dashboard Control service.
"""

from typing import List, Optional, Sequence, Tuple

from shared.logging import get_logger
from .models import (
    DashboardDeclaration, Section, VisibleSection, ResolvedDashboard,
    DenialReason, DenialKind, EvaluationContext,
    CapabilityFacts, EntitlementFacts, FeatureFacts
)


def missing_from(required: Sequence[str], available: frozenset) -> Tuple[str, ...]:
    """Required ids absent from ``available``, in declared order."""
    return tuple(item for item in required if item not in available)


class VisibilityResolver:
    """Evaluates a dashboard declaration against already-resolved facts.

    The resolver holds no state between calls. Identical inputs always
    produce an identical ResolvedDashboard.
    """

    def __init__(self):
        self.logger = get_logger("dashboard.resolver")

    def resolve(
        self,
        declaration: DashboardDeclaration,
        context: EvaluationContext,
        capabilities: CapabilityFacts,
        entitlements: EntitlementFacts,
        features: FeatureFacts
    ) -> ResolvedDashboard:
        """Resolve which sections of ``declaration`` the subject may see."""
        denial = self._check_dashboard_gates(declaration, context, capabilities, entitlements, features)
        if denial is not None:
            self.logger.debug(
                "Dashboard denied",
                dashboard_id=declaration.dashboard_id,
                subject_id=context.subject_id,
                kind=denial.kind.value
            )
            return ResolvedDashboard(
                dashboard_id=declaration.dashboard_id,
                evaluation_time=context.evaluation_time,
                visible_sections=(),
                hidden_sections=declaration.top_level_ids(),
                reasons=(denial,)
            )

        hidden: List[str] = []
        reasons: List[DenialReason] = []
        visible = self._resolve_sections(
            declaration.sections, capabilities, entitlements, features, hidden, reasons
        )

        self.logger.debug(
            "Dashboard resolved",
            dashboard_id=declaration.dashboard_id,
            subject_id=context.subject_id,
            visible=len(visible),
            hidden=len(hidden)
        )

        return ResolvedDashboard(
            dashboard_id=declaration.dashboard_id,
            evaluation_time=context.evaluation_time,
            visible_sections=visible,
            hidden_sections=tuple(hidden),
            reasons=tuple(reasons)
        )

    def _check_dashboard_gates(
        self,
        declaration: DashboardDeclaration,
        context: EvaluationContext,
        capabilities: CapabilityFacts,
        entitlements: EntitlementFacts,
        features: FeatureFacts
    ) -> Optional[DenialReason]:
        """Return the first failing dashboard-level gate, or None."""
        dashboard_id = declaration.dashboard_id

        if context.subject_type not in declaration.allowed_subject_types:
            return DenialReason(
                dashboard_id,
                DenialKind.SUBJECT_NOT_ALLOWED,
                f"Subject type '{context.subject_type.value}' is not allowed"
            )

        if declaration.allowed_tenants and context.tenant_id not in declaration.allowed_tenants:
            return DenialReason(
                dashboard_id,
                DenialKind.TENANT_NOT_ALLOWED,
                f"Tenant '{context.tenant_id}' is not allowed"
            )

        if declaration.allowed_partners and context.partner_id not in declaration.allowed_partners:
            return DenialReason(
                dashboard_id,
                DenialKind.PARTNER_NOT_ALLOWED,
                f"Partner '{context.partner_id or ''}' is not allowed"
            )

        missing = missing_from(declaration.required_capabilities, capabilities.granted)
        if missing:
            return DenialReason(
                dashboard_id,
                DenialKind.MISSING_CAPABILITY,
                f"Dashboard requires capabilities: {', '.join(missing)}"
            )

        missing = missing_from(declaration.required_entitlements, entitlements.active)
        if missing:
            return DenialReason(
                dashboard_id,
                DenialKind.MISSING_ENTITLEMENT,
                f"Dashboard requires entitlements: {', '.join(missing)}"
            )

        missing = missing_from(declaration.required_features, features.enabled)
        if missing:
            return DenialReason(
                dashboard_id,
                DenialKind.MISSING_FEATURE,
                f"Dashboard requires features: {', '.join(missing)}"
            )

        return None

    def _check_section(
        self,
        section: Section,
        capabilities: CapabilityFacts,
        entitlements: EntitlementFacts,
        features: FeatureFacts
    ) -> Optional[DenialReason]:
        """Capability, then entitlement, then feature. First failure wins."""
        missing = missing_from(section.required_capabilities, capabilities.granted)
        if missing:
            return DenialReason(
                section.section_id,
                DenialKind.MISSING_CAPABILITY,
                f"Missing capabilities: {', '.join(missing)}"
            )

        missing = missing_from(section.required_entitlements, entitlements.active)
        if missing:
            return DenialReason(
                section.section_id,
                DenialKind.MISSING_ENTITLEMENT,
                f"Missing entitlements: {', '.join(missing)}"
            )

        missing = missing_from(section.required_features, features.enabled)
        if missing:
            return DenialReason(
                section.section_id,
                DenialKind.MISSING_FEATURE,
                f"Missing features: {', '.join(missing)}"
            )

        return None

    def _resolve_sections(
        self,
        sections: Sequence[Section],
        capabilities: CapabilityFacts,
        entitlements: EntitlementFacts,
        features: FeatureFacts,
        hidden: List[str],
        reasons: List[DenialReason]
    ) -> Tuple[VisibleSection, ...]:
        # Recursion depth is bounded by MAX_SECTION_DEPTH, enforced when the
        # declaration is built.
        visible = []
        for section in sections:
            denial = self._check_section(section, capabilities, entitlements, features)
            if denial is not None:
                # Descendants of a hidden section are neither evaluated nor reported.
                hidden.append(section.section_id)
                reasons.append(denial)
                continue

            children = ()
            if section.children:
                children = self._resolve_sections(
                    section.children, capabilities, entitlements, features, hidden, reasons
                )

            visible.append(VisibleSection(
                section_id=section.section_id,
                label=section.label,
                icon=section.icon,
                children=children
            ))

        return tuple(visible)


_default_resolver = VisibilityResolver()


def resolve_dashboard(
    declaration: DashboardDeclaration,
    context: EvaluationContext,
    capabilities: CapabilityFacts,
    entitlements: EntitlementFacts,
    features: FeatureFacts
) -> ResolvedDashboard:
    """Resolve a dashboard with the module-level resolver."""
    return _default_resolver.resolve(declaration, context, capabilities, entitlements, features)
