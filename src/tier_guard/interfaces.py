"""Protocols for the collaborators Tier-Guard consumes.

The engine never fetches data itself. Callers plug in objects that
satisfy these protocols (database repositories, API clients, test
fakes) when they need the SDK to re-fetch state, e.g. before a commit.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tier_guard.models import ResourceSnapshot, UserAccount


@runtime_checkable
class SnapshotProvider(Protocol):
    """Anything with a ``fetch_snapshot()`` method.

    Implementations return a fresh, point-in-time copy of an account's
    pages, links, short links, sub-accounts and API keys.
    """

    def fetch_snapshot(self, account_id: str) -> ResourceSnapshot:
        """Fetch the current resources for ``account_id``."""
        ...


@runtime_checkable
class AccountDirectory(Protocol):
    """Anything with a ``get_account()`` method.

    Implementations return roles, permissions, company memberships and
    user-management relationships for RBAC resolution.
    """

    def get_account(self, user_id: str) -> UserAccount:
        """Fetch identity and relationship data for ``user_id``."""
        ...
