"""Tests for the downgrade assessor."""

import logging
from datetime import UTC, datetime, timedelta

import pytest

from tier_guard.downgrade.assessor import DowngradeAssessor, InvalidTransitionError
from tier_guard.models import (
    UNLIMITED,
    DowngradeOptions,
    DowngradeStrategy,
    FeatureKey,
    ImpactStatus,
    ResourceDescriptor,
    ResourceSnapshot,
    ResourceType,
    Tier,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _items(prefix: str, count: int, default: str | None = None) -> list[ResourceDescriptor]:
    return [
        ResourceDescriptor(
            id=f"{prefix}{n}",
            name=f"{prefix} {n}",
            created_at=T0 + timedelta(days=n),
            is_default=f"{prefix}{n}" == default,
        )
        for n in range(1, count + 1)
    ]


@pytest.fixture()
def assessor() -> DowngradeAssessor:
    return DowngradeAssessor()


@pytest.fixture()
def twelve_links() -> ResourceSnapshot:
    # l12 is the newest link but it is the default
    return ResourceSnapshot(links=_items("l", 12, default="l12"))


USER_CHOICE = DowngradeOptions(strategy=DowngradeStrategy.USER_CHOICE)


# --- Premium -> Free with 12 links ---


class TestLinkDowngrade:
    def test_keeps_five_links(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links)
        links = result.per_resource_type[ResourceType.LINKS]
        assert links.current_count == 12
        assert links.target_limit == 5
        assert len(links.keep_ids) == 5
        assert len(links.remove_ids) == 7
        assert links.status == ImpactStatus.RESTRICTED

    def test_default_plus_oldest_kept(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess("premium", "free", twelve_links)
        links = result.per_resource_type[ResourceType.LINKS]
        assert links.keep_ids == ["l1", "l2", "l3", "l4", "l12"]
        assert links.remove_ids == ["l5", "l6", "l7", "l8", "l9", "l10", "l11"]

    def test_single_warning(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links)
        assert len(result.warnings) == 1
        assert "links" in result.warnings[0]
        assert "7" in result.warnings[0]
        assert result.warnings[0] == (
            "7 links will be removed to fit within the free limit of 5 links"
        )

    def test_without_default_keeps_five_oldest(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(links=_items("l", 12))
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, snap)
        links = result.per_resource_type[ResourceType.LINKS]
        assert links.keep_ids == ["l1", "l2", "l3", "l4", "l5"]
        assert len(links.remove_ids) == 7
        assert len(result.warnings) == 1

    def test_keep_default_needs_no_action(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links)
        assert result.requires_user_action is False
        assert result.can_proceed_automatically is True


# --- Invariants ---


class TestInvariants:
    @pytest.fixture()
    def mixed(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            pages=_items("p", 4, default="p3"),
            links=_items("l", 60),
            short_links=_items("s", 8),
            sub_accounts=_items("u", 2),
            api_keys=_items("k", 5),
        )

    @pytest.mark.parametrize("target", [Tier.FREE, Tier.PRO, Tier.PREMIUM])
    def test_partition_and_limit(self, assessor: DowngradeAssessor, mixed, target):
        result = assessor.assess(Tier.ENTERPRISE, target, mixed)
        for resource_type, impact in result.per_resource_type.items():
            all_ids = mixed.ids(resource_type)
            assert set(impact.keep_ids) | set(impact.remove_ids) == set(all_ids)
            assert not set(impact.keep_ids) & set(impact.remove_ids)
            if impact.target_limit != UNLIMITED:
                assert len(impact.keep_ids) <= impact.target_limit

    def test_every_type_reported(self, assessor: DowngradeAssessor, mixed):
        result = assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        assert list(result.per_resource_type) == list(ResourceType)

    def test_default_preserved(self, assessor: DowngradeAssessor, mixed):
        result = assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        assert result.per_resource_type[ResourceType.PAGES].keep_ids == ["p3"]

    def test_deterministic(self, assessor: DowngradeAssessor, mixed):
        first = assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        second = assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_snapshot_order_does_not_change_survivors(self, assessor: DowngradeAssessor):
        links = _items("l", 9)
        a = assessor.assess(Tier.PRO, Tier.FREE, ResourceSnapshot(links=links))
        b = assessor.assess(Tier.PRO, Tier.FREE, ResourceSnapshot(links=list(reversed(links))))
        assert set(a.per_resource_type[ResourceType.LINKS].keep_ids) == set(
            b.per_resource_type[ResourceType.LINKS].keep_ids
        )

    def test_one_warning_per_reduced_type(self, assessor: DowngradeAssessor, mixed):
        result = assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        reduced = [i for i in result.per_resource_type.values() if i.remove_ids]
        assert len(result.warnings) == len(reduced) == 5

    def test_snapshot_not_mutated(self, assessor: DowngradeAssessor, mixed):
        before = mixed.model_dump()
        assessor.assess(Tier.ENTERPRISE, Tier.FREE, mixed)
        assert mixed.model_dump() == before


# --- Status and limits ---


class TestStatus:
    def test_within_limit_retained(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(links=_items("l", 3))
        impact = assessor.assess(Tier.PREMIUM, Tier.FREE, snap).per_resource_type[ResourceType.LINKS]
        assert impact.status == ImpactStatus.RETAINED
        assert impact.keep_ids == ["l1", "l2", "l3"]
        assert impact.remove_ids == []

    def test_zero_quota_removes_everything(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(short_links=_items("s", 3))
        impact = assessor.assess(Tier.PREMIUM, Tier.FREE, snap).per_resource_type[
            ResourceType.SHORT_LINKS
        ]
        assert impact.status == ImpactStatus.REMOVED
        assert impact.keep_ids == []
        assert impact.remove_ids == ["s1", "s2", "s3"]

    def test_empty_type_retained(self, assessor: DowngradeAssessor):
        impact = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot()).per_resource_type[
            ResourceType.API_KEYS
        ]
        assert impact.status == ImpactStatus.RETAINED
        assert impact.current_count == 0

    def test_enterprise_to_premium_caps_links(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(links=_items("l", 150))
        impact = assessor.assess(Tier.ENTERPRISE, Tier.PREMIUM, snap).per_resource_type[
            ResourceType.LINKS
        ]
        assert len(impact.keep_ids) == 100
        assert impact.keep_ids[0] == "l1"


# --- Transitions ---


class TestTransitions:
    def test_upgrade_rejected(self, assessor: DowngradeAssessor):
        with pytest.raises(InvalidTransitionError, match="is an upgrade"):
            assessor.assess(Tier.FREE, Tier.PRO, ResourceSnapshot())

    def test_same_tier_is_no_op(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.PREMIUM, twelve_links)
        assert result.warnings == []
        assert result.feature_changes == []
        assert "without any data loss" in result.impact_summary

    def test_unknown_tier(self, assessor: DowngradeAssessor):
        with pytest.raises(ValueError, match="Unknown tier"):
            assessor.assess("gold", Tier.FREE, ResourceSnapshot())


# --- User choice ---


class TestUserChoice:
    def test_no_selection_requires_action(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, USER_CHOICE)
        assert result.requires_user_action is True
        assert result.required_actions() == ["Choose which links to keep (12 in use, limit 5)"]

    def test_no_selection_falls_back_to_ranking(self, assessor: DowngradeAssessor, twelve_links):
        choice = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, USER_CHOICE)
        default = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links)
        assert (
            choice.per_resource_type[ResourceType.LINKS].keep_ids
            == default.per_resource_type[ResourceType.LINKS].keep_ids
        )

    def test_selection_honoured(self, assessor: DowngradeAssessor, twelve_links):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.USER_CHOICE,
            user_selections={ResourceType.LINKS: ["l7", "l8", "l9", "l10", "l11"]},
        )
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, opts)
        links = result.per_resource_type[ResourceType.LINKS]
        assert links.keep_ids == ["l7", "l8", "l9", "l10", "l11"]
        assert links.selection_supplied is True
        assert result.requires_user_action is False

    def test_short_selection_topped_up(self, assessor: DowngradeAssessor, twelve_links):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.USER_CHOICE,
            user_selections={ResourceType.LINKS: ["l9"]},
        )
        links = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, opts).per_resource_type[
            ResourceType.LINKS
        ]
        assert links.keep_ids == ["l1", "l2", "l3", "l9", "l12"]

    def test_stale_selection_ignored(self, assessor: DowngradeAssessor, twelve_links, caplog):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.USER_CHOICE,
            user_selections={ResourceType.LINKS: ["deleted-link", "l11"]},
        )
        with caplog.at_level(logging.WARNING, logger="tier_guard.downgrade.assessor"):
            result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, opts)
        links = result.per_resource_type[ResourceType.LINKS]
        assert "deleted-link" not in links.keep_ids
        assert "l11" in links.keep_ids
        assert len(links.keep_ids) == 5
        assert "deleted-link" in caplog.text

    def test_selection_for_other_type_still_requires_action(
        self, assessor: DowngradeAssessor, twelve_links
    ):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.USER_CHOICE,
            user_selections={ResourceType.PAGES: ["p1"]},
        )
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, opts)
        assert result.requires_user_action is True

    def test_keep_default_ignores_selection(self, assessor: DowngradeAssessor, twelve_links):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.KEEP_DEFAULT,
            user_selections={ResourceType.LINKS: ["l7", "l8", "l9", "l10", "l11"]},
        )
        links = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, opts).per_resource_type[
            ResourceType.LINKS
        ]
        assert links.keep_ids == ["l1", "l2", "l3", "l4", "l12"]
        assert links.selection_supplied is False


# --- Pass-through flags and feature changes ---


class TestReporting:
    def test_flags_carried_through(self, assessor: DowngradeAssessor):
        opts = DowngradeOptions(dry_run=False, notify_user=True)
        result = assessor.assess(Tier.PRO, Tier.FREE, ResourceSnapshot(), opts)
        assert result.dry_run is False
        assert result.notify_user is True
        assert result.strategy == DowngradeStrategy.KEEP_DEFAULT

    def test_default_options(self, assessor: DowngradeAssessor):
        result = assessor.assess(Tier.PRO, Tier.FREE, ResourceSnapshot())
        assert result.dry_run is True
        assert result.notify_user is False

    def test_capability_losses(self, assessor: DowngradeAssessor):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot())
        changes = {c.feature: c for c in result.feature_changes}
        assert changes[FeatureKey.VIDEO_BACKGROUNDS].status == ImpactStatus.REMOVED
        assert changes[FeatureKey.VIDEO_BACKGROUNDS].detail == "Video backgrounds will be disabled"
        assert changes[FeatureKey.CUSTOM_DOMAIN].detail == "Custom domain will be disconnected"
        assert FeatureKey.CUSTOM_THEMES not in changes

    def test_quota_reductions(self, assessor: DowngradeAssessor):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot())
        changes = {c.feature: c for c in result.feature_changes}
        retention = changes[FeatureKey.ANALYTICS_RETENTION_DAYS]
        assert retention.status == ImpactStatus.RESTRICTED
        assert retention.detail == "analyticsRetentionDays will be reduced from 365 to 30"
        assert changes[FeatureKey.API_REQUESTS_PER_DAY].status == ImpactStatus.REMOVED

    def test_resource_quotas_not_in_feature_changes(self, assessor: DowngradeAssessor):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot())
        features = {c.feature for c in result.feature_changes}
        assert FeatureKey.MAX_LINKS not in features
        assert FeatureKey.MAX_PAGES not in features

    def test_capability_losses_are_not_warnings(self, assessor: DowngradeAssessor):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot())
        assert result.warnings == []
        assert result.feature_changes

    def test_impact_summary(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links, USER_CHOICE)
        lines = result.impact_summary.splitlines()
        assert lines[0] == "Your account will be downgraded from PREMIUM to FREE."
        assert lines[2] == "1. 7 links will be removed to fit within the free limit of 5 links"
        assert lines[-1].startswith("You need to choose which items to keep")


# --- Default page ---


class TestDefaultPage:
    def test_kept_default_page(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(pages=_items("p", 4, default="p3"))
        pages = assessor.assess(Tier.PREMIUM, Tier.FREE, snap).per_resource_type[ResourceType.PAGES]
        assert pages.default_id == "p3"

    def test_falls_back_to_top_ranked_page(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(pages=_items("p", 4))
        pages = assessor.assess(Tier.PREMIUM, Tier.FREE, snap).per_resource_type[ResourceType.PAGES]
        assert pages.keep_ids == ["p1"]
        assert pages.default_id == "p1"

    def test_selection_dropping_old_default(self, assessor: DowngradeAssessor):
        opts = DowngradeOptions(
            strategy=DowngradeStrategy.USER_CHOICE,
            user_selections={ResourceType.PAGES: ["p2", "p3", "p4"]},
        )
        snap = ResourceSnapshot(pages=_items("p", 5, default="p1"))
        pages = assessor.assess(Tier.PREMIUM, Tier.PRO, snap, opts).per_resource_type[
            ResourceType.PAGES
        ]
        assert pages.keep_ids == ["p2", "p3", "p4"]
        assert pages.default_id == "p2"

    def test_within_limit_keeps_existing_default(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(pages=_items("p", 2, default="p2"))
        pages = assessor.assess(Tier.PREMIUM, Tier.PRO, snap).per_resource_type[ResourceType.PAGES]
        assert pages.status == ImpactStatus.RETAINED
        assert pages.default_id == "p2"

    def test_no_pages(self, assessor: DowngradeAssessor):
        pages = assessor.assess(Tier.PREMIUM, Tier.FREE, ResourceSnapshot()).per_resource_type[
            ResourceType.PAGES
        ]
        assert pages.default_id is None

    def test_only_pages_carry_default(self, assessor: DowngradeAssessor, twelve_links):
        links = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links).per_resource_type[
            ResourceType.LINKS
        ]
        assert links.default_id is None

    def test_in_serialised_assessment(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot(pages=_items("p", 3, default="p2"))
        data = assessor.assess(Tier.PREMIUM, Tier.FREE, snap).to_dict()
        assert data["per_resource_type"]["pages"]["default_id"] == "p2"


# --- Link capabilities ---


class TestLinkCapabilityUsage:
    def test_unused_link_capabilities_not_reported(self, assessor: DowngradeAssessor, twelve_links):
        result = assessor.assess(Tier.PREMIUM, Tier.FREE, twelve_links)
        features = {c.feature for c in result.feature_changes}
        assert FeatureKey.LINK_ANIMATIONS not in features
        assert FeatureKey.LINK_SCHEDULING not in features
        assert FeatureKey.LINK_LOCKING not in features
        assert FeatureKey.CUSTOM_LAYOUTS not in features
        assert FeatureKey.VIDEO_BACKGROUNDS in features

    def test_used_capability_reported(self, assessor: DowngradeAssessor):
        animated = ResourceDescriptor(
            id="l1", created_at=T0, uses=frozenset({FeatureKey.LINK_ANIMATIONS})
        )
        snap = ResourceSnapshot(links=[animated, *_items("x", 2)])
        result = assessor.assess(Tier.PRO, Tier.FREE, snap)
        changes = {c.feature: c for c in result.feature_changes}
        assert changes[FeatureKey.LINK_ANIMATIONS].detail == "Link animations will be removed"
        assert FeatureKey.LINK_SCHEDULING not in changes

    def test_uses_parsed_from_camel_case_payload(self, assessor: DowngradeAssessor):
        snap = ResourceSnapshot.model_validate(
            {
                "links": [
                    {"id": "l1", "createdAt": "2024-01-01T00:00:00Z", "uses": ["linkLocking"]},
                ]
            }
        )
        result = assessor.assess(Tier.PRO, Tier.FREE, snap)
        assert FeatureKey.LINK_LOCKING in {c.feature for c in result.feature_changes}

    def test_usage_only_matters_when_capability_is_lost(self, assessor: DowngradeAssessor):
        locked = ResourceDescriptor(
            id="l1", created_at=T0, uses=frozenset({FeatureKey.LINK_LOCKING})
        )
        result = assessor.assess(Tier.PREMIUM, Tier.PRO, ResourceSnapshot(links=[locked]))
        assert FeatureKey.LINK_LOCKING not in {c.feature for c in result.feature_changes}
