"""
Policy data models for the Dashboard Control service.

Everything here is an immutable value object. Declarations are built once
at configuration time and validated on construction; contexts and facts
describe one evaluation instant.
"""

from typing import Iterable, Iterator, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from shared.errors import DeclarationError


MAX_SECTION_DEPTH = 32


class SubjectType(str, Enum):
    """Kinds of subject that may request a dashboard."""
    SUPER_ADMIN = "super_admin"
    PARTNER_ADMIN = "partner_admin"
    TENANT_ADMIN = "tenant_admin"
    STAFF = "staff"
    END_USER = "end_user"


class DenialKind(str, Enum):
    """Why a section or a whole dashboard was hidden."""
    MISSING_CAPABILITY = "missing_capability"
    MISSING_ENTITLEMENT = "missing_entitlement"
    MISSING_FEATURE = "missing_feature"
    TENANT_NOT_ALLOWED = "tenant_not_allowed"
    PARTNER_NOT_ALLOWED = "partner_not_allowed"
    SUBJECT_NOT_ALLOWED = "subject_not_allowed"


def _ordered(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Collapse an iterable into a duplicate-free tuple keeping first-seen order."""
    if not values:
        return ()
    if isinstance(values, str):
        values = (values,)
    return tuple(dict.fromkeys(values))


def _members(values: Optional[Iterable[str]]) -> frozenset:
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset((values,))
    return frozenset(values)


@dataclass(frozen=True)
class Section:
    """A gated node of the dashboard tree.

    Requirements are checked only against this section; nothing is
    inherited from ancestors.
    """
    section_id: str
    label: str
    icon: Optional[str] = None
    required_capabilities: Tuple[str, ...] = ()
    required_entitlements: Tuple[str, ...] = ()
    required_features: Tuple[str, ...] = ()
    children: Tuple["Section", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "required_capabilities", _ordered(self.required_capabilities))
        object.__setattr__(self, "required_entitlements", _ordered(self.required_entitlements))
        object.__setattr__(self, "required_features", _ordered(self.required_features))
        object.__setattr__(self, "children", tuple(self.children or ()))


@dataclass(frozen=True)
class DashboardDeclaration:
    """Static description of a dashboard as a tree of gated sections."""
    dashboard_id: str
    label: str
    allowed_subject_types: frozenset
    sections: Tuple[Section, ...] = ()
    allowed_tenants: frozenset = frozenset()
    allowed_partners: frozenset = frozenset()
    required_capabilities: Tuple[str, ...] = ()
    required_entitlements: Tuple[str, ...] = ()
    required_features: Tuple[str, ...] = ()

    def __post_init__(self):
        try:
            subject_types = frozenset(SubjectType(s) for s in _members(self.allowed_subject_types))
        except ValueError as e:
            raise DeclarationError(str(e), {"dashboard_id": self.dashboard_id}) from e
        object.__setattr__(self, "allowed_subject_types", subject_types)
        object.__setattr__(self, "allowed_tenants", _members(self.allowed_tenants))
        object.__setattr__(self, "allowed_partners", _members(self.allowed_partners))
        object.__setattr__(self, "required_capabilities", _ordered(self.required_capabilities))
        object.__setattr__(self, "required_entitlements", _ordered(self.required_entitlements))
        object.__setattr__(self, "required_features", _ordered(self.required_features))
        object.__setattr__(self, "sections", tuple(self.sections or ()))
        self._validate()

    def _validate(self):
        if not self.dashboard_id:
            raise DeclarationError("Dashboard id must not be empty")

        if not self.allowed_subject_types:
            raise DeclarationError(
                "Dashboard must allow at least one subject type",
                {"dashboard_id": self.dashboard_id}
            )

        seen = set()
        for section, _parent_id, depth in self.iter_sections():
            if not section.section_id:
                raise DeclarationError(
                    "Section id must not be empty",
                    {"dashboard_id": self.dashboard_id, "label": section.label}
                )
            if section.section_id == self.dashboard_id:
                raise DeclarationError(
                    f"Section id '{section.section_id}' collides with the dashboard id",
                    {"dashboard_id": self.dashboard_id}
                )
            if section.section_id in seen:
                raise DeclarationError(
                    f"Duplicate section id '{section.section_id}'",
                    {"dashboard_id": self.dashboard_id, "section_id": section.section_id}
                )
            if depth >= MAX_SECTION_DEPTH:
                raise DeclarationError(
                    f"Section '{section.section_id}' is nested deeper than {MAX_SECTION_DEPTH} levels",
                    {"dashboard_id": self.dashboard_id, "section_id": section.section_id}
                )
            seen.add(section.section_id)

    def iter_sections(self) -> Iterator[Tuple[Section, Optional[str], int]]:
        """Yield ``(section, parent_id, depth)`` for every section, pre-order."""
        stack = [(section, None, 0) for section in reversed(self.sections)]
        while stack:
            section, parent_id, depth = stack.pop()
            yield section, parent_id, depth
            # Stop descending once past the limit; validation reports it.
            if depth >= MAX_SECTION_DEPTH:
                continue
            for child in reversed(section.children):
                stack.append((child, section.section_id, depth + 1))

    def section_ids(self) -> Tuple[str, ...]:
        """All section ids in declared pre-order."""
        return tuple(section.section_id for section, _, _ in self.iter_sections())

    def top_level_ids(self) -> Tuple[str, ...]:
        return tuple(section.section_id for section in self.sections)

    def find_section(self, section_id: str) -> Optional[Section]:
        for section, _, _ in self.iter_sections():
            if section.section_id == section_id:
                return section
        return None


@dataclass(frozen=True)
class EvaluationContext:
    """Who is asking, and at which instant.

    ``evaluation_time`` is always supplied by the caller; the engine never
    reads a clock.
    """
    subject_id: str
    subject_type: SubjectType
    tenant_id: str
    evaluation_time: datetime
    partner_id: Optional[str] = None
    roles: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "subject_type", SubjectType(self.subject_type))
        object.__setattr__(self, "roles", _ordered(self.roles))


@dataclass(frozen=True)
class CapabilityFacts:
    """Capabilities granted to a subject. ``denied`` is informational only."""
    subject_id: str
    granted: frozenset = frozenset()
    denied: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "granted", _members(self.granted))
        object.__setattr__(self, "denied", _members(self.denied))


@dataclass(frozen=True)
class EntitlementFacts:
    """Entitlement state for a tenant."""
    tenant_id: str
    active: frozenset = frozenset()
    expired: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "active", _members(self.active))
        object.__setattr__(self, "expired", _members(self.expired))


@dataclass(frozen=True)
class FeatureFacts:
    """Global feature-flag state."""
    enabled: frozenset = frozenset()
    disabled: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "enabled", _members(self.enabled))
        object.__setattr__(self, "disabled", _members(self.disabled))


@dataclass(frozen=True)
class DenialReason:
    """One recorded denial, attached to a section id or the dashboard id."""
    section_id: str
    kind: DenialKind
    details: str

    def __post_init__(self):
        object.__setattr__(self, "kind", DenialKind(self.kind))


@dataclass(frozen=True)
class VisibleSection:
    """A section that passed its gates, with its visible descendants."""
    section_id: str
    label: str
    icon: Optional[str] = None
    children: Tuple["VisibleSection", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children or ()))


@dataclass(frozen=True)
class ResolvedDashboard:
    """Outcome of resolving one declaration for one context."""
    dashboard_id: str
    evaluation_time: datetime
    visible_sections: Tuple[VisibleSection, ...] = ()
    hidden_sections: Tuple[str, ...] = ()
    reasons: Tuple[DenialReason, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "visible_sections", tuple(self.visible_sections or ()))
        object.__setattr__(self, "hidden_sections", tuple(self.hidden_sections or ()))
        object.__setattr__(self, "reasons", tuple(self.reasons or ()))

    def visible_section_ids(self) -> Tuple[str, ...]:
        """Ids of every visible section, pre-order."""
        ids = []
        stack = list(reversed(self.visible_sections))
        while stack:
            section = stack.pop()
            ids.append(section.section_id)
            stack.extend(reversed(section.children))
        return tuple(ids)

    def is_visible(self, section_id: str) -> bool:
        return section_id in self.visible_section_ids()

    def reason_for(self, section_id: str) -> Optional[DenialReason]:
        for reason in self.reasons:
            if reason.section_id == section_id:
                return reason
        return None
