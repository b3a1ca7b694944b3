"""Tier-Guard: tier policy, feature gating and subscription-downgrade assessment."""

__version__ = "0.1.0"

from tier_guard.config import TierGuardConfig, find_config, load_config
from tier_guard.downgrade.assessor import DowngradeAssessor, InvalidTransitionError
from tier_guard.gate.feature_gate import FeatureGate
from tier_guard.interfaces import AccountDirectory, SnapshotProvider
from tier_guard.models import (
    UNLIMITED,
    DowngradeAssessment,
    DowngradeOptions,
    DowngradePreview,
    DowngradeStrategy,
    FeatureAccessResult,
    FeatureKey,
    RbacContext,
    ResourceDescriptor,
    ResourceSnapshot,
    ResourceType,
    Tier,
    UnknownTierError,
    UserAccount,
    parse_tier,
)
from tier_guard.policy.table import DEFAULT_POLICY, ConfigurationError, TierPolicy, load_policy
from tier_guard.rbac.resolver import RbacResolver
from tier_guard.sdk.client import DowngradeBlockedError, TierGuard, TierGuardError

__all__ = [
    "AccountDirectory",
    "ConfigurationError",
    "DEFAULT_POLICY",
    "DowngradeAssessment",
    "DowngradeAssessor",
    "DowngradeBlockedError",
    "DowngradeOptions",
    "DowngradePreview",
    "DowngradeStrategy",
    "FeatureAccessResult",
    "FeatureGate",
    "FeatureKey",
    "find_config",
    "InvalidTransitionError",
    "load_config",
    "load_policy",
    "parse_tier",
    "RbacContext",
    "RbacResolver",
    "ResourceDescriptor",
    "ResourceSnapshot",
    "ResourceType",
    "SnapshotProvider",
    "Tier",
    "TierGuard",
    "TierGuardConfig",
    "TierGuardError",
    "TierPolicy",
    "UNLIMITED",
    "UnknownTierError",
    "UserAccount",
    "__version__",
]
