"""
Built-in dashboard declarations and their presentation metadata.
"""

from typing import Dict

from ..policy.models import DashboardDeclaration, Section, SubjectType
from .models import PresentationMetadata, SectionGroup


SUPERADMIN_DASHBOARD_ID = "superadmin-dashboard"
TENANT_ADMIN_DASHBOARD_ID = "tenant-admin-dashboard"


def superadmin_declaration() -> DashboardDeclaration:
    return DashboardDeclaration(
        dashboard_id=SUPERADMIN_DASHBOARD_ID,
        label="Super Admin Dashboard",
        allowed_subject_types={SubjectType.SUPER_ADMIN},
        sections=(
            Section("overview", "Overview", icon="📊"),
            Section("users", "User Management", icon="👥", required_capabilities=("view:users",)),
            Section("partners", "Partners", icon="🤝", required_capabilities=("view:partners",)),
            Section("modules", "Module Registry", icon="📦", required_capabilities=("view:modules",)),
            Section("permissions", "Permissions", icon="🔐", required_capabilities=("view:permissions",)),
            Section("entitlements", "Entitlements", icon="🎫", required_capabilities=("view:entitlements",)),
            Section("feature-flags", "Feature Flags", icon="🚩", required_capabilities=("view:feature-flags",)),
            Section("pricing", "Pricing", icon="💰", required_capabilities=("view:pricing",)),
            Section("incentives", "Incentives", icon="🎁", required_capabilities=("view:incentives",)),
            Section("branding", "Branding", icon="🎨", required_capabilities=("view:branding",)),
            Section("ai-services", "AI Services", icon="🤖", required_capabilities=("view:ai-services",)),
            Section("analytics", "Analytics", icon="📈", required_capabilities=("view:analytics",)),
            Section("audit-logs", "Audit Logs", icon="📋", required_capabilities=("view:audit-logs",)),
            Section("system-config", "System Config", icon="⚙️", required_capabilities=("admin:system-config",)),
            Section("integrations", "Integrations", icon="🔗", required_capabilities=("view:integrations",)),
        )
    )


def superadmin_metadata() -> PresentationMetadata:
    return PresentationMetadata(
        declaration=superadmin_declaration(),
        descriptions={
            "overview": "Platform overview and key metrics",
            "users": "Manage platform users and access",
            "partners": "Partner management and onboarding",
            "modules": "Module registry and configuration",
            "permissions": "Role and permission management",
            "entitlements": "Entitlement assignments and tracking",
            "feature-flags": "Feature flag configuration",
            "pricing": "Pricing tiers and plans",
            "incentives": "Incentive programs and rewards",
            "branding": "Platform branding and theming",
            "ai-services": "AI service configuration",
            "analytics": "Platform analytics and reporting",
            "audit-logs": "Security and audit logging",
            "system-config": "System configuration",
            "integrations": "Third-party integrations",
        },
        groups=(
            SectionGroup("core", "Core", 1, ("overview", "users", "partners")),
            SectionGroup("governance", "Governance", 2, ("modules", "permissions", "entitlements", "feature-flags")),
            SectionGroup("platform", "Platform", 3, ("pricing", "incentives", "branding", "ai-services")),
            SectionGroup("operations", "Operations", 4, ("analytics", "audit-logs", "system-config", "integrations")),
        )
    )


def tenant_admin_declaration() -> DashboardDeclaration:
    return DashboardDeclaration(
        dashboard_id=TENANT_ADMIN_DASHBOARD_ID,
        label="Tenant Admin Dashboard",
        allowed_subject_types={SubjectType.SUPER_ADMIN, SubjectType.PARTNER_ADMIN, SubjectType.TENANT_ADMIN},
        required_capabilities=("admin:view",),
        sections=(
            Section("overview", "Overview", icon="📊"),
            Section(
                "branding", "Branding", icon="🎨",
                required_capabilities=("view:branding",),
                children=(
                    Section("tenant-branding", "Tenant Branding", required_entitlements=("branding",)),
                    Section(
                        "custom-domains", "Custom Domains", icon="🌐",
                        required_entitlements=("custom-domains",),
                        required_features=("section:custom-domains",)
                    ),
                )
            ),
            Section("modules", "Modules", icon="📦", required_capabilities=("view:modules",)),
            Section("entitlements", "Entitlements", icon="🎫", required_capabilities=("view:entitlements",)),
            Section(
                "feature-flags", "Feature Flags", icon="🚩",
                required_capabilities=("view:feature-flags",),
                required_features=("section:feature-flags",)
            ),
            Section("audit-logs", "Audit Logs", icon="📋", required_capabilities=("view:audit-logs",)),
        )
    )


def tenant_admin_metadata() -> PresentationMetadata:
    return PresentationMetadata(
        declaration=tenant_admin_declaration(),
        descriptions={
            "overview": "Tenant overview and key metrics",
            "branding": "Tenant look and feel",
            "tenant-branding": "Logos, colours and theme",
            "custom-domains": "Custom domain management",
            "modules": "Modules enabled for this tenant",
            "entitlements": "Active and expired entitlements",
            "feature-flags": "Feature flags affecting this tenant",
            "audit-logs": "Tenant audit trail",
        },
        groups=(
            SectionGroup("core", "Core", 1, ("overview", "branding")),
            SectionGroup("governance", "Governance", 2, ("modules", "entitlements", "feature-flags")),
            SectionGroup("operations", "Operations", 3, ("audit-logs",)),
        )
    )


def build_catalog() -> Dict[str, PresentationMetadata]:
    """Declarations served by the dashboard service, keyed by dashboard id."""
    catalog = {}
    for metadata in (superadmin_metadata(), tenant_admin_metadata()):
        catalog[metadata.declaration.dashboard_id] = metadata
    return catalog
