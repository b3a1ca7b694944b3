"""Tier policy table: loading, validation and lookup of tier limits.

The table maps every tier to a value for every feature key. It is
validated once when constructed:

1. Every tier and every feature key has an entry (closed vocabulary)
2. Capabilities are booleans, quotas are non-negative ints or "unlimited"
3. Limits never decrease as the tier ordinal increases
4. Every capability is granted, and every quota is non-zero, at the top tier

After construction the table is immutable and lookups are total.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from tier_guard.models import (
    FEATURE_KINDS,
    RESOURCE_QUOTAS,
    TIER_ORDER,
    UNLIMITED,
    FeatureKey,
    FeatureKind,
    LimitValue,
    ResourceType,
    Tier,
    TierLimits,
    UnknownTierError,
    parse_tier,
)
from tier_guard.policy.defaults import DEFAULT_TIER_LIMITS

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the tier policy table is incomplete or inconsistent."""


class TierPolicy:
    """Immutable table of limits and capabilities per tier.

    Safe to share across threads: nothing is mutated after ``__init__``.
    """

    def __init__(self, table: Mapping[Any, Mapping[Any, Any]]) -> None:
        normalized = _normalize_table(table)
        _check_monotonic(normalized)
        _check_attainable(normalized)
        self._limits: dict[Tier, TierLimits] = {
            tier: TierLimits(tier=tier, limits=normalized[tier]) for tier in TIER_ORDER
        }

    @property
    def tiers(self) -> list[Tier]:
        """All tiers in ascending order."""
        return list(TIER_ORDER)

    def tier_ordinal(self, tier: Tier) -> int:
        # String comparison of tier names does not follow the upgrade path.
        return TIER_ORDER.index(tier)

    def limits_for(self, tier: Tier) -> TierLimits:
        return self._limits[tier]

    def limit(self, tier: Tier, feature: FeatureKey) -> LimitValue:
        return self._limits[tier][feature]

    def quota_for(self, tier: Tier, resource_type: ResourceType) -> int | str:
        """Return the quota bounding a resource type at a tier."""
        return self._limits[tier][RESOURCE_QUOTAS[resource_type]]

    def feature_kind(self, feature: FeatureKey) -> FeatureKind:
        return FEATURE_KINDS[feature]

    def next_tier(self, tier: Tier) -> Tier | None:
        """Return the next tier in the upgrade path, or None at the top."""
        ordinal = self.tier_ordinal(tier)
        if ordinal + 1 >= len(TIER_ORDER):
            return None
        return TIER_ORDER[ordinal + 1]

    def is_downgrade(self, current: Tier, target: Tier) -> bool:
        return self.tier_ordinal(target) < self.tier_ordinal(current)

    def meets(self, tier: Tier, required: Tier) -> bool:
        """True if ``tier`` is at or above ``required``."""
        return self.tier_ordinal(tier) >= self.tier_ordinal(required)

    def to_dict(self) -> dict[str, dict[str, LimitValue]]:
        return {
            tier.value: {key.value: value for key, value in self._limits[tier].limits.items()}
            for tier in TIER_ORDER
        }


def _normalize_table(table: Mapping[Any, Mapping[Any, Any]]) -> dict[Tier, dict[FeatureKey, LimitValue]]:
    """Coerce raw keys/values and check the table is complete."""
    if not isinstance(table, Mapping):
        raise ConfigurationError(f"Tier table must be a mapping, got {type(table).__name__}")

    normalized: dict[Tier, dict[FeatureKey, LimitValue]] = {}
    for raw_tier, raw_limits in table.items():
        try:
            tier = parse_tier(raw_tier)
        except UnknownTierError as e:
            raise ConfigurationError(str(e)) from e
        if tier in normalized:
            raise ConfigurationError(f"Duplicate tier entry: {tier.value}")
        if not isinstance(raw_limits, Mapping):
            raise ConfigurationError(f"Limits for tier '{tier.value}' must be a mapping")

        limits: dict[FeatureKey, LimitValue] = {}
        for raw_key, raw_value in raw_limits.items():
            try:
                key = FeatureKey(raw_key)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown feature key '{raw_key}' in tier '{tier.value}'"
                ) from None
            limits[key] = _normalize_value(tier, key, raw_value)

        missing = [k.value for k in FeatureKey if k not in limits]
        if missing:
            raise ConfigurationError(
                f"Tier '{tier.value}' is missing feature keys: {', '.join(missing)}"
            )
        # Fixed key order keeps serialised output stable.
        normalized[tier] = {k: limits[k] for k in FeatureKey}

    missing_tiers = [t.value for t in TIER_ORDER if t not in normalized]
    if missing_tiers:
        raise ConfigurationError(f"Tier table is missing tiers: {', '.join(missing_tiers)}")

    return normalized


def _normalize_value(tier: Tier, key: FeatureKey, value: Any) -> LimitValue:
    where = f"'{key.value}' in tier '{tier.value}'"
    if FEATURE_KINDS[key] == FeatureKind.CAPABILITY:
        if not isinstance(value, bool):
            raise ConfigurationError(f"Capability {where} must be a boolean, got {value!r}")
        return value

    if isinstance(value, str) and value.strip().lower() == UNLIMITED:
        return UNLIMITED
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            f"Quota {where} must be a non-negative integer or 'unlimited', got {value!r}"
        )
    if value == -1:
        return UNLIMITED
    if value < 0:
        raise ConfigurationError(f"Quota {where} must not be negative, got {value}")
    return value


def _rank(value: LimitValue) -> float:
    """Map a limit onto a number so tiers can be compared."""
    if value == UNLIMITED:
        return math.inf
    return float(value)


def _check_monotonic(table: dict[Tier, dict[FeatureKey, LimitValue]]) -> None:
    """A higher tier must never grant less than a lower tier."""
    for key in FeatureKey:
        for lower, higher in zip(TIER_ORDER, TIER_ORDER[1:]):
            if _rank(table[higher][key]) < _rank(table[lower][key]):
                raise ConfigurationError(
                    f"Feature '{key.value}' is not monotonic: "
                    f"{higher.value}={table[higher][key]!r} grants less than "
                    f"{lower.value}={table[lower][key]!r}"
                )


def _check_attainable(table: dict[Tier, dict[FeatureKey, LimitValue]]) -> None:
    """Every feature must be available at the top tier."""
    top = TIER_ORDER[-1]
    for key in FeatureKey:
        value = table[top][key]
        if FEATURE_KINDS[key] == FeatureKind.CAPABILITY and value is False:
            raise ConfigurationError(f"Capability '{key.value}' is not granted by any tier")
        if FEATURE_KINDS[key] == FeatureKind.QUOTA and value == 0:
            raise ConfigurationError(f"Quota '{key.value}' is zero at every tier")


def load_policy(path: str | Path) -> TierPolicy:
    """Load and validate a tier policy from a YAML file.

    The file must have a top-level 'tiers' key mapping each tier name to
    its feature limits.

    Raises:
        ConfigurationError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Tier policy file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict) or "tiers" not in raw:
        raise ConfigurationError(f"Tier policy file must have a top-level 'tiers' key: {path}")

    try:
        policy = TierPolicy(raw["tiers"])
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid tier policy in {path}: {e}") from e

    logger.info("Loaded tier policy from %s", path)
    return policy


DEFAULT_POLICY = TierPolicy(DEFAULT_TIER_LIMITS)
