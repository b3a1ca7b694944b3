"""Built-in tier limits table.

Quotas use ``"unlimited"`` for no upper bound. The table is validated
(completeness, value kinds, monotonicity) when ``DEFAULT_POLICY`` is
built at import time.
"""

from __future__ import annotations

from tier_guard.models import UNLIMITED, FeatureKey, LimitValue, Tier

DEFAULT_TIER_LIMITS: dict[Tier, dict[FeatureKey, LimitValue]] = {
    Tier.FREE: {
        FeatureKey.MAX_PAGES: 1,
        FeatureKey.MAX_LINKS: 5,
        FeatureKey.MAX_LINK_GROUPS: 2,
        FeatureKey.CUSTOM_LAYOUTS: False,
        FeatureKey.LINK_ANIMATIONS: False,
        FeatureKey.LINK_SCHEDULING: False,
        FeatureKey.LINK_LOCKING: False,
        FeatureKey.MAX_SHORT_LINKS: 0,
        FeatureKey.SHORT_LINK_ANALYTICS: False,
        FeatureKey.CUSTOM_THEMES: True,
        FeatureKey.PREMIUM_FONTS: False,
        FeatureKey.CUSTOM_LOGOS: False,
        FeatureKey.VIDEO_BACKGROUNDS: False,
        FeatureKey.REMOVE_FOOTER: False,
        FeatureKey.ADVANCED_ANALYTICS: False,
        FeatureKey.ANALYTICS_EXPORT: False,
        FeatureKey.ANALYTICS_RETENTION_DAYS: 30,
        FeatureKey.API_ACCESS: False,
        FeatureKey.MAX_API_KEYS: 0,
        FeatureKey.API_REQUESTS_PER_MINUTE: 0,
        FeatureKey.API_REQUESTS_PER_DAY: 0,
        FeatureKey.MAX_SUB_ACCOUNTS: 0,
        FeatureKey.CUSTOM_DOMAIN: False,
        FeatureKey.PRIORITY_SUPPORT: False,
        FeatureKey.WHITE_LABEL: False,
    },
    Tier.PRO: {
        FeatureKey.MAX_PAGES: 3,
        FeatureKey.MAX_LINKS: 50,
        FeatureKey.MAX_LINK_GROUPS: 10,
        FeatureKey.CUSTOM_LAYOUTS: True,
        FeatureKey.LINK_ANIMATIONS: True,
        FeatureKey.LINK_SCHEDULING: True,
        FeatureKey.LINK_LOCKING: True,
        FeatureKey.MAX_SHORT_LINKS: 5,
        FeatureKey.SHORT_LINK_ANALYTICS: True,
        FeatureKey.CUSTOM_THEMES: True,
        FeatureKey.PREMIUM_FONTS: True,
        FeatureKey.CUSTOM_LOGOS: True,
        FeatureKey.VIDEO_BACKGROUNDS: False,
        FeatureKey.REMOVE_FOOTER: True,
        FeatureKey.ADVANCED_ANALYTICS: True,
        FeatureKey.ANALYTICS_EXPORT: True,
        FeatureKey.ANALYTICS_RETENTION_DAYS: 90,
        FeatureKey.API_ACCESS: True,
        FeatureKey.MAX_API_KEYS: 3,
        FeatureKey.API_REQUESTS_PER_MINUTE: 60,
        FeatureKey.API_REQUESTS_PER_DAY: 10000,
        FeatureKey.MAX_SUB_ACCOUNTS: 0,
        FeatureKey.CUSTOM_DOMAIN: False,
        FeatureKey.PRIORITY_SUPPORT: False,
        FeatureKey.WHITE_LABEL: False,
    },
    Tier.PREMIUM: {
        FeatureKey.MAX_PAGES: 10,
        FeatureKey.MAX_LINKS: 100,
        FeatureKey.MAX_LINK_GROUPS: 25,
        FeatureKey.CUSTOM_LAYOUTS: True,
        FeatureKey.LINK_ANIMATIONS: True,
        FeatureKey.LINK_SCHEDULING: True,
        FeatureKey.LINK_LOCKING: True,
        FeatureKey.MAX_SHORT_LINKS: 20,
        FeatureKey.SHORT_LINK_ANALYTICS: True,
        FeatureKey.CUSTOM_THEMES: True,
        FeatureKey.PREMIUM_FONTS: True,
        FeatureKey.CUSTOM_LOGOS: True,
        FeatureKey.VIDEO_BACKGROUNDS: True,
        FeatureKey.REMOVE_FOOTER: True,
        FeatureKey.ADVANCED_ANALYTICS: True,
        FeatureKey.ANALYTICS_EXPORT: True,
        FeatureKey.ANALYTICS_RETENTION_DAYS: 365,
        FeatureKey.API_ACCESS: True,
        FeatureKey.MAX_API_KEYS: 10,
        FeatureKey.API_REQUESTS_PER_MINUTE: 120,
        FeatureKey.API_REQUESTS_PER_DAY: 50000,
        FeatureKey.MAX_SUB_ACCOUNTS: 3,
        FeatureKey.CUSTOM_DOMAIN: True,
        FeatureKey.PRIORITY_SUPPORT: True,
        FeatureKey.WHITE_LABEL: False,
    },
    Tier.ENTERPRISE: {
        FeatureKey.MAX_PAGES: UNLIMITED,
        FeatureKey.MAX_LINKS: UNLIMITED,
        FeatureKey.MAX_LINK_GROUPS: UNLIMITED,
        FeatureKey.CUSTOM_LAYOUTS: True,
        FeatureKey.LINK_ANIMATIONS: True,
        FeatureKey.LINK_SCHEDULING: True,
        FeatureKey.LINK_LOCKING: True,
        FeatureKey.MAX_SHORT_LINKS: UNLIMITED,
        FeatureKey.SHORT_LINK_ANALYTICS: True,
        FeatureKey.CUSTOM_THEMES: True,
        FeatureKey.PREMIUM_FONTS: True,
        FeatureKey.CUSTOM_LOGOS: True,
        FeatureKey.VIDEO_BACKGROUNDS: True,
        FeatureKey.REMOVE_FOOTER: True,
        FeatureKey.ADVANCED_ANALYTICS: True,
        FeatureKey.ANALYTICS_EXPORT: True,
        FeatureKey.ANALYTICS_RETENTION_DAYS: UNLIMITED,
        FeatureKey.API_ACCESS: True,
        FeatureKey.MAX_API_KEYS: UNLIMITED,
        FeatureKey.API_REQUESTS_PER_MINUTE: 300,
        FeatureKey.API_REQUESTS_PER_DAY: UNLIMITED,
        FeatureKey.MAX_SUB_ACCOUNTS: UNLIMITED,
        FeatureKey.CUSTOM_DOMAIN: True,
        FeatureKey.PRIORITY_SUPPORT: True,
        FeatureKey.WHITE_LABEL: True,
    },
}
