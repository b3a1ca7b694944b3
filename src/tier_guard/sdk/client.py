"""TierGuard SDK — the single public entry point.

Wires together every internal component (tier policy, feature gate,
RBAC resolver, downgrade assessor) behind one class.

Usage::

    from tier_guard import TierGuard

    guard = TierGuard()
    result = guard.can_access("free", "advancedAnalytics")
    assessment = guard.assess_downgrade("premium", "free", snapshot)
"""

from __future__ import annotations

import logging
from pathlib import Path

from tier_guard.config import load_config
from tier_guard.downgrade.assessor import DowngradeAssessor
from tier_guard.gate.feature_gate import FeatureGate
from tier_guard.interfaces import AccountDirectory, SnapshotProvider
from tier_guard.models import (
    DowngradeAssessment,
    DowngradeOptions,
    DowngradePreview,
    DowngradeStrategy,
    FeatureAccessResult,
    FeatureKey,
    RbacContext,
    ResourceSnapshot,
    Tier,
    UserAccount,
)
from tier_guard.policy.table import DEFAULT_POLICY, TierPolicy, load_policy
from tier_guard.rbac.resolver import RbacResolver

logger = logging.getLogger(__name__)


class TierGuardError(Exception):
    """Raised for SDK configuration or usage errors."""


class DowngradeBlockedError(TierGuardError):
    """Raised when a commit is attempted while user action is still required."""

    def __init__(self, assessment: DowngradeAssessment) -> None:
        self.assessment = assessment
        actions = "; ".join(assessment.required_actions()) or "confirm the fallback selections"
        super().__init__(f"Downgrade requires user action before commit: {actions}")


class TierGuard:
    """Public API for Tier-Guard.

    Holds one immutable TierPolicy and the stateless evaluators built on
    it, so a single instance can be shared across threads and requests.
    """

    def __init__(
        self,
        policy: TierPolicy | str | Path | None = None,
        default_strategy: DowngradeStrategy | str = DowngradeStrategy.KEEP_DEFAULT,
        notify_user: bool = False,
    ) -> None:
        """Initialize TierGuard.

        Args:
            policy: A TierPolicy, a path to a tier policy YAML file, or
                None for the built-in table.
            default_strategy: Strategy used when no DowngradeOptions are given.
            notify_user: Default ``notify_user`` flag for such options.

        Raises:
            ConfigurationError: If the policy file is missing or invalid.
        """
        if isinstance(policy, TierPolicy):
            self._policy = policy
        elif policy is not None:
            self._policy = load_policy(policy)
        else:
            self._policy = DEFAULT_POLICY

        try:
            self._default_strategy = DowngradeStrategy(default_strategy)
        except ValueError:
            raise TierGuardError(f"Unknown downgrade strategy: {default_strategy!r}") from None
        self._notify_user = notify_user

        self._gate = FeatureGate(self._policy)
        self._resolver = RbacResolver()
        self._assessor = DowngradeAssessor(self._policy)

    @classmethod
    def from_config(cls, path: str | Path | None = None, *, auto_discover: bool = True) -> TierGuard:
        """Build a TierGuard from ``tier-guard.yaml`` (explicit or discovered)."""
        cfg = load_config(path, auto_discover=auto_discover)
        return cls(
            policy=cfg.policy,
            default_strategy=cfg.default_strategy,
            notify_user=cfg.notify_user,
        )

    @property
    def policy(self) -> TierPolicy:
        return self._policy

    # --- Feature gating ---

    def can_access(
        self,
        tier: Tier | str,
        feature: FeatureKey | str,
        usage: int | None = None,
    ) -> FeatureAccessResult:
        """Check a capability or quota for a tier (see FeatureGate.can_access)."""
        return self._gate.can_access(tier, feature, usage)

    # --- RBAC ---

    def resolve_context(
        self, user: UserAccount, selected_context_id: str | None = None
    ) -> RbacContext:
        return self._resolver.resolve(user, selected_context_id)

    def resolve_for(
        self,
        user_id: str,
        selected_context_id: str | None,
        directory: AccountDirectory,
    ) -> RbacContext:
        """Fetch the account through ``directory`` and resolve its context."""
        return self._resolver.resolve(directory.get_account(user_id), selected_context_id)

    def available_contexts(self, user: UserAccount) -> list[str]:
        return self._resolver.available_contexts(user)

    # --- Downgrade ---

    def default_options(self) -> DowngradeOptions:
        return DowngradeOptions(strategy=self._default_strategy, notify_user=self._notify_user)

    def assess_downgrade(
        self,
        current_tier: Tier | str,
        target_tier: Tier | str,
        snapshot: ResourceSnapshot,
        options: DowngradeOptions | None = None,
    ) -> DowngradeAssessment:
        return self._assessor.assess(
            current_tier, target_tier, snapshot, options or self.default_options()
        )

    def preview_downgrade(
        self,
        current_tier: Tier | str,
        target_tier: Tier | str,
        snapshot: ResourceSnapshot,
        options: DowngradeOptions | None = None,
    ) -> DowngradePreview:
        """Assess a downgrade for display, with the actions still required."""
        assessment = self.assess_downgrade(current_tier, target_tier, snapshot, options)
        return DowngradePreview(
            assessment=assessment,
            can_proceed_automatically=assessment.can_proceed_automatically,
            required_actions=assessment.required_actions(),
        )

    def recompute_for_commit(
        self,
        account_id: str,
        current_tier: Tier | str,
        target_tier: Tier | str,
        provider: SnapshotProvider,
        options: DowngradeOptions | None = None,
        user_confirmed: bool = False,
    ) -> DowngradeAssessment:
        """Re-fetch the snapshot and re-assess immediately before a commit.

        A previously displayed assessment may be stale (resources created
        after the preview), so the returned assessment is the one the
        caller must apply.

        Raises:
            DowngradeBlockedError: If the fresh assessment still requires
                user action and ``user_confirmed`` is False.
        """
        snapshot = provider.fetch_snapshot(account_id)
        options = (options or self.default_options()).model_copy(update={"dry_run": False})
        assessment = self._assessor.assess(current_tier, target_tier, snapshot, options)

        if assessment.requires_user_action and not user_confirmed:
            raise DowngradeBlockedError(assessment)

        logger.info(
            "Recomputed downgrade for %s: %s -> %s, %d warning(s)",
            account_id,
            assessment.from_tier.value,
            assessment.to_tier.value,
            len(assessment.warnings),
        )
        return assessment
