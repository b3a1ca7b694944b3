"""Core data models for Tier-Guard.

Defines the schemas for:
- Tiers and feature keys (the closed vocabulary of the policy table)
- Feature access results (FeatureGate output)
- Accounts, company memberships and user management (RBAC input)
- RBAC contexts (RbacResolver output)
- Resource snapshots and downgrade options (DowngradeAssessor input)
- Downgrade assessments (DowngradeAssessor output)
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# --- Sentinels ---

UNLIMITED = "unlimited"
"""Quota value meaning "no upper bound"."""

SELF_CONTEXT = "self"
"""Context id that selects the user's own roles and permissions."""

LimitValue = bool | int | Literal["unlimited"]


# --- Enums ---


class UnknownTierError(ValueError):
    """Raised when a tier name does not match any known tier."""


class Tier(enum.StrEnum):
    """Subscription tiers, declared in ascending order."""

    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


TIER_ORDER: tuple[Tier, ...] = tuple(Tier)


def parse_tier(value: str | Tier) -> Tier:
    """Parse a tier name (case-insensitive).

    Unknown names are rejected rather than mapped to a default tier.
    """
    if isinstance(value, Tier):
        return value
    normalized = (value or "").strip().lower()
    try:
        return Tier(normalized)
    except ValueError:
        allowed = ", ".join(t.value for t in Tier)
        raise UnknownTierError(f"Unknown tier: {value!r} (expected one of: {allowed})") from None


class FeatureKind(enum.StrEnum):
    QUOTA = "quota"
    CAPABILITY = "capability"


class FeatureKey(enum.StrEnum):
    # Page features
    MAX_PAGES = "maxPages"

    # Link features
    MAX_LINKS = "maxLinks"
    MAX_LINK_GROUPS = "maxLinkGroups"
    CUSTOM_LAYOUTS = "customLayouts"
    LINK_ANIMATIONS = "linkAnimations"
    LINK_SCHEDULING = "linkScheduling"
    LINK_LOCKING = "linkLocking"

    # Short link features
    MAX_SHORT_LINKS = "maxShortLinks"
    SHORT_LINK_ANALYTICS = "shortLinkAnalytics"

    # Appearance features
    CUSTOM_THEMES = "customThemes"
    PREMIUM_FONTS = "premiumFonts"
    CUSTOM_LOGOS = "customLogos"
    VIDEO_BACKGROUNDS = "videoBackgrounds"
    REMOVE_FOOTER = "removeFooter"

    # Analytics features
    ADVANCED_ANALYTICS = "advancedAnalytics"
    ANALYTICS_EXPORT = "analyticsExport"
    ANALYTICS_RETENTION_DAYS = "analyticsRetentionDays"

    # API features
    API_ACCESS = "apiAccess"
    MAX_API_KEYS = "maxApiKeys"
    API_REQUESTS_PER_MINUTE = "apiRequestsPerMinute"
    API_REQUESTS_PER_DAY = "apiRequestsPerDay"

    # Account features
    MAX_SUB_ACCOUNTS = "maxSubAccounts"
    CUSTOM_DOMAIN = "customDomain"
    PRIORITY_SUPPORT = "prioritySupport"
    WHITE_LABEL = "whiteLabel"


FEATURE_KINDS: dict[FeatureKey, FeatureKind] = {
    FeatureKey.MAX_PAGES: FeatureKind.QUOTA,
    FeatureKey.MAX_LINKS: FeatureKind.QUOTA,
    FeatureKey.MAX_LINK_GROUPS: FeatureKind.QUOTA,
    FeatureKey.CUSTOM_LAYOUTS: FeatureKind.CAPABILITY,
    FeatureKey.LINK_ANIMATIONS: FeatureKind.CAPABILITY,
    FeatureKey.LINK_SCHEDULING: FeatureKind.CAPABILITY,
    FeatureKey.LINK_LOCKING: FeatureKind.CAPABILITY,
    FeatureKey.MAX_SHORT_LINKS: FeatureKind.QUOTA,
    FeatureKey.SHORT_LINK_ANALYTICS: FeatureKind.CAPABILITY,
    FeatureKey.CUSTOM_THEMES: FeatureKind.CAPABILITY,
    FeatureKey.PREMIUM_FONTS: FeatureKind.CAPABILITY,
    FeatureKey.CUSTOM_LOGOS: FeatureKind.CAPABILITY,
    FeatureKey.VIDEO_BACKGROUNDS: FeatureKind.CAPABILITY,
    FeatureKey.REMOVE_FOOTER: FeatureKind.CAPABILITY,
    FeatureKey.ADVANCED_ANALYTICS: FeatureKind.CAPABILITY,
    FeatureKey.ANALYTICS_EXPORT: FeatureKind.CAPABILITY,
    FeatureKey.ANALYTICS_RETENTION_DAYS: FeatureKind.QUOTA,
    FeatureKey.API_ACCESS: FeatureKind.CAPABILITY,
    FeatureKey.MAX_API_KEYS: FeatureKind.QUOTA,
    FeatureKey.API_REQUESTS_PER_MINUTE: FeatureKind.QUOTA,
    FeatureKey.API_REQUESTS_PER_DAY: FeatureKind.QUOTA,
    FeatureKey.MAX_SUB_ACCOUNTS: FeatureKind.QUOTA,
    FeatureKey.CUSTOM_DOMAIN: FeatureKind.CAPABILITY,
    FeatureKey.PRIORITY_SUPPORT: FeatureKind.CAPABILITY,
    FeatureKey.WHITE_LABEL: FeatureKind.CAPABILITY,
}


class ResourceType(enum.StrEnum):
    PAGES = "pages"
    LINKS = "links"
    SHORT_LINKS = "shortLinks"
    SUB_ACCOUNTS = "subAccounts"
    API_KEYS = "apiKeys"


RESOURCE_QUOTAS: dict[ResourceType, FeatureKey] = {
    ResourceType.PAGES: FeatureKey.MAX_PAGES,
    ResourceType.LINKS: FeatureKey.MAX_LINKS,
    ResourceType.SHORT_LINKS: FeatureKey.MAX_SHORT_LINKS,
    ResourceType.SUB_ACCOUNTS: FeatureKey.MAX_SUB_ACCOUNTS,
    ResourceType.API_KEYS: FeatureKey.MAX_API_KEYS,
}

RESOURCE_LABELS: dict[ResourceType, str] = {
    ResourceType.PAGES: "pages",
    ResourceType.LINKS: "links",
    ResourceType.SHORT_LINKS: "short links",
    ResourceType.SUB_ACCOUNTS: "sub-accounts",
    ResourceType.API_KEYS: "API keys",
}


class RelationshipState(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REVOKED = "revoked"


class ManagementDirection(enum.StrEnum):
    MANAGER = "manager"
    MANAGED = "managed"


class ContextType(enum.StrEnum):
    SELF = "self"
    COMPANY = "company"
    MANAGED = "managed"


class DowngradeStrategy(enum.StrEnum):
    KEEP_DEFAULT = "keep-default"
    USER_CHOICE = "user-choice"


class ImpactStatus(enum.StrEnum):
    RETAINED = "retained"
    RESTRICTED = "restricted"
    REMOVED = "removed"


# --- Policy Schema ---


class TierLimits(BaseModel):
    """The limit value of every feature key at one tier.

    Built by TierPolicy after the table has been validated, so lookups
    by FeatureKey are total.
    """

    model_config = ConfigDict(frozen=True)

    tier: Tier
    limits: dict[FeatureKey, LimitValue]

    def __getitem__(self, feature: FeatureKey) -> LimitValue:
        return self.limits[feature]

    def __contains__(self, feature: object) -> bool:
        return feature in self.limits


class FeatureAccessResult(BaseModel):
    """The result of a single feature or quota check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    feature: FeatureKey
    current_tier: Tier
    limit: int | Literal["unlimited"] | None = None
    required_tier: Tier | None = None
    reason: str | None = None


# --- Account / RBAC Schema ---


class CompanyMembership(BaseModel):
    """A user's membership in a company account."""

    company_id: str
    company_name: str = ""
    role: str
    permissions: list[str] = Field(default_factory=list)
    state: RelationshipState = RelationshipState.ACCEPTED


class UserManagement(BaseModel):
    """A user-to-user management relationship.

    ``direction`` is from the point of view of the account holding the
    entry: ``managed`` means the entry's ``user_id`` is managed by them.
    """

    user_id: str
    display_name: str = ""
    email: str = ""
    role: str
    permissions: list[str] = Field(default_factory=list)
    state: RelationshipState
    direction: ManagementDirection
    tier: Tier | None = None


class UserAccount(BaseModel):
    """Identity and relationship data for RBAC resolution."""

    user_id: str
    username: str = ""
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    tier: Tier | None = None
    company_memberships: list[CompanyMembership] = Field(default_factory=list)
    user_managements: list[UserManagement] = Field(default_factory=list)


class RbacContext(BaseModel):
    """The role/permission scope a user is operating under."""

    model_config = ConfigDict(frozen=True)

    selected_context_id: str
    context_type: ContextType
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def missing_permissions(self, *required: str) -> list[str]:
        """Return the required permissions this context lacks, sorted."""
        have = set(self.permissions)
        return sorted(set(required) - have)


# --- Resource Snapshot Schema ---


class ResourceDescriptor(BaseModel):
    """A lightweight, point-in-time view of one user resource."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    is_default: bool = False
    created_at: datetime
    currently_active: bool = True
    # Capabilities this item relies on, e.g. a link with an animation.
    uses: frozenset[FeatureKey] = frozenset()

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class ResourceSnapshot(BaseModel):
    """Read-only copy of an account's resources, one sequence per type."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    pages: tuple[ResourceDescriptor, ...] = ()
    links: tuple[ResourceDescriptor, ...] = ()
    short_links: tuple[ResourceDescriptor, ...] = ()
    sub_accounts: tuple[ResourceDescriptor, ...] = ()
    api_keys: tuple[ResourceDescriptor, ...] = ()

    @model_validator(mode="after")
    def _unique_ids(self) -> ResourceSnapshot:
        for resource_type in ResourceType:
            seen: set[str] = set()
            for item in self.items(resource_type):
                if item.id in seen:
                    raise ValueError(f"Duplicate {resource_type.value} id: {item.id}")
                seen.add(item.id)
        return self

    def items(self, resource_type: ResourceType) -> tuple[ResourceDescriptor, ...]:
        """Return the descriptors for one resource type, in snapshot order."""
        match resource_type:
            case ResourceType.PAGES:
                return self.pages
            case ResourceType.LINKS:
                return self.links
            case ResourceType.SHORT_LINKS:
                return self.short_links
            case ResourceType.SUB_ACCOUNTS:
                return self.sub_accounts
            case ResourceType.API_KEYS:
                return self.api_keys
        raise KeyError(resource_type)

    def ids(self, resource_type: ResourceType) -> list[str]:
        return [item.id for item in self.items(resource_type)]


# --- Downgrade Schema ---


class DowngradeOptions(BaseModel):
    """Options for a downgrade assessment.

    ``dry_run`` and ``notify_user`` do not change the computed result;
    they are carried through to the execution and notification layers.
    """

    model_config = ConfigDict(frozen=True)

    strategy: DowngradeStrategy = DowngradeStrategy.KEEP_DEFAULT
    user_selections: dict[ResourceType, list[str]] | None = None
    dry_run: bool = True
    notify_user: bool = False

    def selection_for(self, resource_type: ResourceType) -> list[str] | None:
        if self.user_selections is None:
            return None
        return self.user_selections.get(resource_type)


class ResourceTypeImpact(BaseModel):
    """The outcome of a downgrade for one resource type."""

    model_config = ConfigDict(frozen=True)

    resource_type: ResourceType
    current_count: int
    target_limit: int | Literal["unlimited"]
    keep_ids: list[str] = Field(default_factory=list)
    remove_ids: list[str] = Field(default_factory=list)
    status: ImpactStatus = ImpactStatus.RETAINED
    selection_supplied: bool = False
    # Pages only: the page that becomes the default after the downgrade.
    default_id: str | None = None


class FeatureChange(BaseModel):
    """A capability or non-resource quota that is lost or reduced."""

    model_config = ConfigDict(frozen=True)

    feature: FeatureKey
    from_limit: LimitValue
    to_limit: LimitValue
    status: ImpactStatus
    detail: str


class DowngradeAssessment(BaseModel):
    """The computed, per-resource-type impact of a downgrade."""

    model_config = ConfigDict(frozen=True)

    from_tier: Tier
    to_tier: Tier
    strategy: DowngradeStrategy
    dry_run: bool
    notify_user: bool
    per_resource_type: dict[ResourceType, ResourceTypeImpact]
    warnings: list[str] = Field(default_factory=list)
    requires_user_action: bool = False
    feature_changes: list[FeatureChange] = Field(default_factory=list)
    impact_summary: str = ""

    @property
    def can_proceed_automatically(self) -> bool:
        return not self.requires_user_action

    def required_actions(self) -> list[str]:
        """Actions the user must take before the downgrade may be applied."""
        if self.strategy != DowngradeStrategy.USER_CHOICE:
            return []
        actions: list[str] = []
        for impact in self.per_resource_type.values():
            if impact.remove_ids and not impact.selection_supplied:
                label = RESOURCE_LABELS[impact.resource_type]
                actions.append(
                    f"Choose which {label} to keep "
                    f"({impact.current_count} in use, limit {impact.target_limit})"
                )
        return actions

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class DowngradePreview(BaseModel):
    """An assessment plus what the caller must do before committing it."""

    model_config = ConfigDict(frozen=True)

    assessment: DowngradeAssessment
    can_proceed_automatically: bool
    required_actions: list[str] = Field(default_factory=list)
