"""Downgrade assessor: computes what survives a move to a lower tier.

Takes (current tier, target tier, resource snapshot, options) and returns
a DowngradeAssessment. Nothing is persisted or mutated; callers apply
the result in their own transaction and must re-run ``assess`` on a
fresh snapshot immediately before committing.

Per resource type, independently:
1. Look up the target tier's quota for the type
2. Within quota (or unlimited): keep everything
3. Over quota: keep ``limit`` items chosen by the strategy
   - keep-default: top of the retention ranking
   - user-choice: the user's selection (stale ids ignored), truncated or
     topped up by the ranking; with no selection, fall back to the
     ranking and flag ``requires_user_action``
4. Warn for every type that loses items
5. For pages, name the kept page that becomes the default

Capabilities and non-resource quotas that shrink are reported
separately as feature changes. Link animations, scheduling, locking
and custom layouts are only reported when some link in the snapshot uses
them.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tier_guard.downgrade.ranking import rank, select_survivors
from tier_guard.models import (
    FEATURE_KINDS,
    RESOURCE_LABELS,
    RESOURCE_QUOTAS,
    UNLIMITED,
    DowngradeAssessment,
    DowngradeOptions,
    DowngradeStrategy,
    FeatureChange,
    FeatureKey,
    FeatureKind,
    ImpactStatus,
    ResourceDescriptor,
    ResourceSnapshot,
    ResourceType,
    ResourceTypeImpact,
    Tier,
    parse_tier,
)
from tier_guard.policy.table import DEFAULT_POLICY, TierPolicy

logger = logging.getLogger(__name__)

_CAPABILITY_DETAILS: dict[FeatureKey, str] = {
    FeatureKey.CUSTOM_LOGOS: "Custom logo will be removed",
    FeatureKey.VIDEO_BACKGROUNDS: "Video backgrounds will be disabled",
    FeatureKey.CUSTOM_DOMAIN: "Custom domain will be disconnected",
    FeatureKey.WHITE_LABEL: "Platform branding will be restored",
    FeatureKey.ANALYTICS_EXPORT: "Analytics export will be disabled",
    FeatureKey.ADVANCED_ANALYTICS: "Advanced analytics will be disabled",
    FeatureKey.API_ACCESS: "API access will be disabled",
    FeatureKey.PREMIUM_FONTS: "Premium fonts will be reverted to a free font",
    FeatureKey.CUSTOM_THEMES: "Custom themes will be reverted to a free theme",
    FeatureKey.LINK_ANIMATIONS: "Link animations will be removed",
    FeatureKey.LINK_SCHEDULING: "Link scheduling will be removed",
    FeatureKey.LINK_LOCKING: "Link locking will be removed",
    FeatureKey.CUSTOM_LAYOUTS: "Custom link layouts will be reset",
    FeatureKey.REMOVE_FOOTER: "The page footer will be shown again",
}

# Reported as lost only when some link actually uses them.
_LINK_USAGE_FEATURES = frozenset(
    {
        FeatureKey.LINK_ANIMATIONS,
        FeatureKey.LINK_SCHEDULING,
        FeatureKey.LINK_LOCKING,
        FeatureKey.CUSTOM_LAYOUTS,
    }
)


class InvalidTransitionError(Exception):
    """Raised when ``assess`` is asked to evaluate something that is not a downgrade."""


class DowngradeAssessor:
    """Stateless downgrade evaluator over a TierPolicy."""

    def __init__(self, policy: TierPolicy | None = None) -> None:
        self._policy = policy or DEFAULT_POLICY

    @property
    def policy(self) -> TierPolicy:
        return self._policy

    def assess(
        self,
        current_tier: Tier | str,
        target_tier: Tier | str,
        snapshot: ResourceSnapshot,
        options: DowngradeOptions | None = None,
    ) -> DowngradeAssessment:
        """Assess the impact of moving from ``current_tier`` to ``target_tier``.

        Args:
            current_tier: The account's tier today.
            target_tier: The tier being moved to (same or lower).
            snapshot: Point-in-time copy of the account's resources.
            options: Strategy, user selections and pass-through flags.

        Returns:
            A DowngradeAssessment. Identical arguments always produce an
            identical assessment.

        Raises:
            InvalidTransitionError: If ``target_tier`` is above ``current_tier``.
        """
        current = parse_tier(current_tier)
        target = parse_tier(target_tier)
        options = options or DowngradeOptions()

        if self._policy.tier_ordinal(target) > self._policy.tier_ordinal(current):
            raise InvalidTransitionError(
                f"{current.value} -> {target.value} is an upgrade, not a downgrade"
            )

        impacts: dict[ResourceType, ResourceTypeImpact] = {}
        warnings: list[str] = []
        requires_user_action = False

        for resource_type in ResourceType:
            impact = self._assess_type(resource_type, target, snapshot, options)
            impacts[resource_type] = impact
            if impact.remove_ids:
                warnings.append(_removal_warning(impact, target))
                if options.strategy == DowngradeStrategy.USER_CHOICE and not impact.selection_supplied:
                    requires_user_action = True

        feature_changes = self._feature_changes(current, target, snapshot)

        logger.debug(
            "Assessed %s -> %s (%s): %d warning(s), user action %s",
            current.value,
            target.value,
            options.strategy.value,
            len(warnings),
            "required" if requires_user_action else "not required",
        )

        return DowngradeAssessment(
            from_tier=current,
            to_tier=target,
            strategy=options.strategy,
            dry_run=options.dry_run,
            notify_user=options.notify_user,
            per_resource_type=impacts,
            warnings=warnings,
            requires_user_action=requires_user_action,
            feature_changes=feature_changes,
            impact_summary=_impact_summary(
                current, target, warnings, feature_changes, requires_user_action
            ),
        )

    def _assess_type(
        self,
        resource_type: ResourceType,
        target: Tier,
        snapshot: ResourceSnapshot,
        options: DowngradeOptions,
    ) -> ResourceTypeImpact:
        items = snapshot.items(resource_type)
        limit = self._policy.quota_for(target, resource_type)
        all_ids = [item.id for item in items]

        selection: list[str] | None = None
        if options.strategy == DowngradeStrategy.USER_CHOICE:
            selection = options.selection_for(resource_type)

        if limit == UNLIMITED or len(items) <= limit:
            return ResourceTypeImpact(
                resource_type=resource_type,
                current_count=len(items),
                target_limit=limit,
                keep_ids=all_ids,
                remove_ids=[],
                status=ImpactStatus.RETAINED,
                selection_supplied=selection is not None,
                default_id=_default_page(resource_type, items),
            )

        if selection is not None:
            known = set(all_ids)
            stale = [i for i in selection if i not in known]
            if stale:
                logger.warning(
                    "Ignoring %d stale %s selection(s) not in snapshot: %s",
                    len(stale),
                    resource_type.value,
                    ", ".join(stale),
                )

        survivors = select_survivors(items, limit, selection)
        keep_ids = [i for i in all_ids if i in survivors]
        remove_ids = [i for i in all_ids if i not in survivors]

        return ResourceTypeImpact(
            resource_type=resource_type,
            current_count=len(items),
            target_limit=limit,
            keep_ids=keep_ids,
            remove_ids=remove_ids,
            status=ImpactStatus.REMOVED if not keep_ids else ImpactStatus.RESTRICTED,
            selection_supplied=selection is not None,
            default_id=_default_page(
                resource_type, [item for item in items if item.id in survivors]
            ),
        )

    def _feature_changes(
        self, current: Tier, target: Tier, snapshot: ResourceSnapshot
    ) -> list[FeatureChange]:
        """List capabilities lost and non-resource quotas reduced."""
        links_use = frozenset().union(*(link.uses for link in snapshot.links))
        resource_quotas = set(RESOURCE_QUOTAS.values())
        before = self._policy.limits_for(current)
        after = self._policy.limits_for(target)

        changes: list[FeatureChange] = []
        for key in FeatureKey:
            if key in resource_quotas or before[key] == after[key]:
                continue
            if FEATURE_KINDS[key] == FeatureKind.CAPABILITY:
                if key in _LINK_USAGE_FEATURES and key not in links_use:
                    continue
                if before[key] and not after[key]:
                    changes.append(
                        FeatureChange(
                            feature=key,
                            from_limit=before[key],
                            to_limit=after[key],
                            status=ImpactStatus.REMOVED,
                            detail=_CAPABILITY_DETAILS.get(key, f"{key.value} will be disabled"),
                        )
                    )
                continue
            # Monotonic table: a differing quota on a downgrade is always lower.
            status = ImpactStatus.REMOVED if after[key] == 0 else ImpactStatus.RESTRICTED
            changes.append(
                FeatureChange(
                    feature=key,
                    from_limit=before[key],
                    to_limit=after[key],
                    status=status,
                    detail=f"{key.value} will be reduced from {before[key]} to {after[key]}",
                )
            )
        return changes


def _default_page(
    resource_type: ResourceType, kept: Sequence[ResourceDescriptor]
) -> str | None:
    """The kept default page, else the top-ranked kept page."""
    if resource_type != ResourceType.PAGES or not kept:
        return None
    return rank(kept)[0].id

def _removal_warning(impact: ResourceTypeImpact, target: Tier) -> str:
    label = RESOURCE_LABELS[impact.resource_type]
    return (
        f"{len(impact.remove_ids)} {label} will be removed to fit within the "
        f"{target.value} limit of {impact.target_limit} {label}"
    )


def _impact_summary(
    current: Tier,
    target: Tier,
    warnings: list[str],
    feature_changes: list[FeatureChange],
    requires_user_action: bool,
) -> str:
    """Render a user-facing summary of the assessment."""
    items = warnings + [change.detail for change in feature_changes]
    if not items:
        return (
            f"Your account will move from {current.value.upper()} to "
            f"{target.value.upper()} without any data loss."
        )

    count = len(items)
    lines = [
        f"Your account will be downgraded from {current.value.upper()} to {target.value.upper()}.",
        f"This will affect {count} feature{'s' if count > 1 else ''}:",
    ]
    lines.extend(f"{n}. {text}" for n, text in enumerate(items, start=1))
    if requires_user_action:
        lines.append("")
        lines.append("You need to choose which items to keep before the downgrade can proceed.")
    return "\n".join(lines)
