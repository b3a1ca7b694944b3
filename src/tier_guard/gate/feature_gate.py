"""Feature gate: evaluates a single capability or quota check.

Takes (tier, feature key, optional current usage) and returns a
FeatureAccessResult. When access is denied the result names the lowest
tier at which the request would succeed.

Evaluation:
1. Resolve the feature key against the closed vocabulary
2. Look up the limit at the caller's tier
3. Capability: allowed if the flag is true
4. Quota with usage: allowed if unlimited or usage < limit
5. Quota without usage: allowed if the quota is non-zero
6. On denial, scan higher tiers (ascending) for the first that allows it

An unknown feature key is a ConfigurationError and never reported as a
normal denial. TierPolicy rejects tables where a capability or quota is
unavailable at every tier, so a denied capability always names a tier.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from tier_guard.models import (
    UNLIMITED,
    FeatureAccessResult,
    FeatureKey,
    FeatureKind,
    LimitValue,
    Tier,
    parse_tier,
)
from tier_guard.policy.table import DEFAULT_POLICY, ConfigurationError, TierPolicy

logger = logging.getLogger(__name__)


def coerce_feature(feature: FeatureKey | str) -> FeatureKey:
    """Resolve a feature key, raising ConfigurationError for unknown keys."""
    if isinstance(feature, FeatureKey):
        return feature
    try:
        return FeatureKey(feature)
    except ValueError:
        raise ConfigurationError(f"Unknown feature key: {feature!r}") from None


class FeatureGate:
    """Stateless feature/quota evaluator over a TierPolicy."""

    def __init__(self, policy: TierPolicy | None = None) -> None:
        self._policy = policy or DEFAULT_POLICY

    @property
    def policy(self) -> TierPolicy:
        return self._policy

    def can_access(
        self,
        tier: Tier | str,
        feature: FeatureKey | str,
        current_usage: int | None = None,
    ) -> FeatureAccessResult:
        """Check whether ``tier`` permits ``feature``.

        Args:
            tier: The account's current tier.
            feature: The feature key to check.
            current_usage: How many of the quota's resources are already
                in use. Ignored for capabilities. When omitted for a
                quota, only "is this available at all" is answered.

        Returns:
            A FeatureAccessResult; ``required_tier`` is set only on denial.

        Raises:
            ConfigurationError: If the feature key is unknown.
        """
        tier = parse_tier(tier)
        key = coerce_feature(feature)
        value = self._policy.limit(tier, key)

        if self._policy.feature_kind(key) == FeatureKind.CAPABILITY:
            return self._check_capability(tier, key, bool(value))

        if current_usage is not None:
            if current_usage < 0:
                raise ValueError(f"current_usage must not be negative, got {current_usage}")
            return self._check_usage(tier, key, value, current_usage)

        return self._check_available(tier, key, value)

    def _check_capability(self, tier: Tier, key: FeatureKey, enabled: bool) -> FeatureAccessResult:
        if enabled:
            return FeatureAccessResult(allowed=True, feature=key, current_tier=tier)

        required = self._first_tier_above(tier, key, lambda v: v is True)
        if required is None:
            raise ConfigurationError(
                f"Capability '{key.value}' is not granted by any tier above {tier.value}"
            )
        logger.debug("Denied %s at %s (requires %s)", key.value, tier.value, required.value)
        return FeatureAccessResult(
            allowed=False,
            feature=key,
            current_tier=tier,
            required_tier=required,
            reason=f"This feature requires {required.value} tier or higher",
        )

    def _check_usage(
        self, tier: Tier, key: FeatureKey, limit: LimitValue, usage: int
    ) -> FeatureAccessResult:
        if limit == UNLIMITED or usage < limit:
            return FeatureAccessResult(allowed=True, feature=key, current_tier=tier, limit=limit)

        required = self._first_tier_above(tier, key, lambda v: v == UNLIMITED or v > usage)
        if required is None:
            reason = f"Usage of {usage} exceeds the {key.value} limit of every tier"
        else:
            reason = (
                f"You've reached the limit of {limit} {key.value}. "
                f"Upgrade to {required.value} to add more."
            )
        logger.debug("Denied %s at %s with usage %d", key.value, tier.value, usage)
        return FeatureAccessResult(
            allowed=False,
            feature=key,
            current_tier=tier,
            limit=limit,
            required_tier=required,
            reason=reason,
        )

    def _check_available(self, tier: Tier, key: FeatureKey, limit: LimitValue) -> FeatureAccessResult:
        if limit != 0:
            return FeatureAccessResult(allowed=True, feature=key, current_tier=tier, limit=limit)

        required = self._first_tier_above(tier, key, lambda v: v != 0)
        if required is None:
            raise ConfigurationError(f"Quota '{key.value}' is zero at every tier")
        return FeatureAccessResult(
            allowed=False,
            feature=key,
            current_tier=tier,
            limit=limit,
            required_tier=required,
            reason=f"This feature requires {required.value} tier or higher",
        )

    def _first_tier_above(
        self, tier: Tier, key: FeatureKey, grants: Callable[[LimitValue], bool]
    ) -> Tier | None:
        """Return the lowest tier above ``tier`` whose limit satisfies ``grants``."""
        start = self._policy.tier_ordinal(tier) + 1
        for candidate in self._policy.tiers[start:]:
            if grants(self._policy.limit(candidate, key)):
                return candidate
        return None

    def minimum_tier_for(self, feature: FeatureKey | str) -> Tier:
        """Return the lowest tier at which ``feature`` is available at all."""
        key = coerce_feature(feature)
        for tier in self._policy.tiers:
            value = self._policy.limit(tier, key)
            if value is True or (not isinstance(value, bool) and value != 0):
                return tier
        raise ConfigurationError(f"Feature '{key.value}' is not available at any tier")

    def remaining(self, tier: Tier | str, feature: FeatureKey | str, usage: int) -> int | None:
        """How many more items the quota allows. None means unlimited."""
        tier = parse_tier(tier)
        key = coerce_feature(feature)
        if self._policy.feature_kind(key) != FeatureKind.QUOTA:
            raise ValueError(f"'{key.value}' is a capability, not a quota")
        limit = self._policy.limit(tier, key)
        if limit == UNLIMITED:
            return None
        return max(limit - usage, 0)

    def available_features(self, tier: Tier | str) -> list[FeatureKey]:
        """Return every feature enabled (or with a non-zero quota) at ``tier``."""
        tier = parse_tier(tier)
        limits = self._policy.limits_for(tier)
        return [
            key
            for key, value in limits.limits.items()
            if value is True or (not isinstance(value, bool) and value != 0)
        ]
