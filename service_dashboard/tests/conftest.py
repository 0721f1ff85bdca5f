"""
Shared fixtures for Dashboard Control tests.
"""

import pytest
from datetime import datetime, timezone

from service_dashboard.app.policy.models import (
    DashboardDeclaration, Section, SubjectType, EvaluationContext,
    CapabilityFacts, EntitlementFacts, FeatureFacts
)
from service_dashboard.app.presentation.models import (
    UiDashboardContext, Permission, Entitlement, FeatureFlag
)


FIXED_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

ALL_SECTIONS = [
    "overview", "users", "partners", "modules", "permissions",
    "entitlements", "feature-flags", "pricing", "incentives",
    "branding", "ai-services", "analytics", "audit-logs",
    "system-config", "integrations"
]


@pytest.fixture
def fixed_time():
    """Deterministic evaluation instant."""
    return FIXED_TIME


@pytest.fixture
def declaration():
    """Tenant console with a nested branding subtree."""
    return DashboardDeclaration(
        dashboard_id="tenant-console",
        label="Tenant Console",
        allowed_subject_types={SubjectType.TENANT_ADMIN, SubjectType.SUPER_ADMIN},
        sections=(
            Section("overview", "Overview", icon="📊"),
            Section(
                "branding", "Branding", icon="🎨",
                required_capabilities=("view:branding",),
                children=(
                    Section("logos", "Logos", required_entitlements=("branding",)),
                    Section("domains", "Custom Domains", required_features=("custom-domains",)),
                )
            ),
            Section(
                "billing", "Billing", icon="💳",
                required_capabilities=("view:billing",),
                required_entitlements=("billing",),
                required_features=("billing-ui",)
            ),
            Section("audit-logs", "Audit Logs", required_capabilities=("view:audit-logs",)),
        )
    )


@pytest.fixture
def context(fixed_time):
    return EvaluationContext(
        subject_id="admin-001",
        subject_type=SubjectType.TENANT_ADMIN,
        tenant_id="tenant-1",
        roles=("tenant_admin",),
        evaluation_time=fixed_time
    )


@pytest.fixture
def capabilities():
    return CapabilityFacts(
        subject_id="admin-001",
        granted={"view:branding", "view:billing", "view:audit-logs"},
        denied=set()
    )


@pytest.fixture
def entitlements():
    return EntitlementFacts(tenant_id="tenant-1", active={"branding", "billing"}, expired=set())


@pytest.fixture
def features():
    return FeatureFacts(enabled={"custom-domains", "billing-ui"}, disabled=set())


@pytest.fixture
def superadmin_ui_context(fixed_time):
    """Super admin holding every view capability."""
    return UiDashboardContext(
        user_id="superadmin-001",
        subject_type=SubjectType.SUPER_ADMIN,
        tenant_id="platform",
        evaluation_time=fixed_time,
        permissions=[Permission(id=f"view:{s}", granted=True) for s in ALL_SECTIONS]
        + [Permission(id="admin:system-config", granted=True)],
        entitlements=[Entitlement(id=s, active=True) for s in ALL_SECTIONS],
        feature_flags=[FeatureFlag(id=f"section:{s}", enabled=s != "integrations") for s in ALL_SECTIONS],
    )


@pytest.fixture
def limited_ui_context(fixed_time):
    """Super admin who may only see overview, users and audit logs."""
    granted = {"overview", "users", "audit-logs"}
    return UiDashboardContext(
        user_id="admin-002",
        subject_type=SubjectType.SUPER_ADMIN,
        tenant_id="platform",
        evaluation_time=fixed_time,
        permissions=[Permission(id=f"view:{s}", granted=s in granted) for s in ALL_SECTIONS],
        entitlements=[Entitlement(id=s, active=s in granted) for s in ALL_SECTIONS],
        feature_flags=[FeatureFlag(id=f"section:{s}", enabled=True) for s in ALL_SECTIONS],
    )


@pytest.fixture
def all_sections():
    """Section ids of the super admin dashboard, in declared order."""
    return list(ALL_SECTIONS)
