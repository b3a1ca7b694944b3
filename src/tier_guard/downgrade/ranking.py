"""Retention ranking for downgrade selection.

Resources are ranked most-worth-keeping first:

1. Default items (``is_default``)
2. Active items before inactive ones
3. Oldest ``created_at`` first
4. Ascending id, so identical input always ranks identically
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from tier_guard.models import ResourceDescriptor


def retention_key(item: ResourceDescriptor) -> tuple[bool, bool, datetime, str]:
    return (not item.is_default, not item.currently_active, item.created_at, item.id)


def rank(items: Iterable[ResourceDescriptor]) -> list[ResourceDescriptor]:
    """Return ``items`` sorted by retention preference."""
    return sorted(items, key=retention_key)


def select_survivors(
    items: Iterable[ResourceDescriptor],
    limit: int,
    preferred_ids: Iterable[str] | None = None,
) -> set[str]:
    """Pick up to ``limit`` ids to keep.

    Without ``preferred_ids`` the top of the ranking is kept. With them,
    preferred items are kept first (truncated by ranking if there are
    too many) and any free slots are topped up from the ranking of the
    remaining items.
    """
    items = list(items)
    if preferred_ids is None:
        return {item.id for item in rank(items)[:limit]}

    preferred = set(preferred_ids)
    chosen = rank(i for i in items if i.id in preferred)[:limit]
    if len(chosen) < limit:
        rest = rank(i for i in items if i.id not in preferred)
        chosen.extend(rest[: limit - len(chosen)])
    return {item.id for item in chosen}
