"""RBAC context resolution.

Derives the effective roles and permissions for a user operating under
a selected context. The selection is an explicit argument; nothing is
read from ambient state.

Resolution order (first match wins):
1. ``"self"`` (or no selection): the user's own roles/permissions
2. An accepted company membership with that company id
3. An accepted user-management entry (direction ``managed``) with that user id
4. Anything else: fall back to ``"self"``

A matched relationship replaces the user's own roles and permissions.
Pending, rejected or revoked relationships never contribute.
"""

from __future__ import annotations

import logging

from tier_guard.models import (
    SELF_CONTEXT,
    CompanyMembership,
    ContextType,
    ManagementDirection,
    RbacContext,
    RelationshipState,
    UserAccount,
    UserManagement,
)

logger = logging.getLogger(__name__)


def _ordered_unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class RbacResolver:
    """Stateless resolver from (user, selected context) to RbacContext."""

    def resolve(self, user: UserAccount, selected_context_id: str | None = None) -> RbacContext:
        """Resolve the effective RBAC context.

        Never raises for an unknown or stale selection: the UI may still
        hold a context id after the relationship was revoked, so such a
        selection resolves to the user's own context.
        """
        if selected_context_id and selected_context_id != SELF_CONTEXT:
            membership = _find_company(user, selected_context_id)
            if membership is not None:
                return RbacContext(
                    selected_context_id=membership.company_id,
                    context_type=ContextType.COMPANY,
                    roles=[membership.role],
                    permissions=_ordered_unique(membership.permissions),
                )

            managed = _find_managed(user, selected_context_id)
            if managed is not None:
                return RbacContext(
                    selected_context_id=managed.user_id,
                    context_type=ContextType.MANAGED,
                    roles=[managed.role],
                    permissions=_ordered_unique(managed.permissions),
                )

            logger.debug(
                "Context %r not available to user %s, using self",
                selected_context_id,
                user.user_id,
            )

        return RbacContext(
            selected_context_id=SELF_CONTEXT,
            context_type=ContextType.SELF,
            roles=_ordered_unique(user.roles),
            permissions=_ordered_unique(user.permissions),
        )

    def available_contexts(self, user: UserAccount) -> list[str]:
        """Return the context ids a user may currently select, self first."""
        ids = [SELF_CONTEXT]
        ids.extend(
            m.company_id
            for m in user.company_memberships
            if m.state == RelationshipState.ACCEPTED
        )
        ids.extend(
            um.user_id
            for um in user.user_managements
            if um.state == RelationshipState.ACCEPTED
            and um.direction == ManagementDirection.MANAGED
        )
        return _ordered_unique(ids)


def _find_company(user: UserAccount, company_id: str) -> CompanyMembership | None:
    for membership in user.company_memberships:
        if membership.company_id == company_id and membership.state == RelationshipState.ACCEPTED:
            return membership
    return None


def _find_managed(user: UserAccount, user_id: str) -> UserManagement | None:
    for entry in user.user_managements:
        if (
            entry.user_id == user_id
            and entry.state == RelationshipState.ACCEPTED
            and entry.direction == ManagementDirection.MANAGED
        ):
            return entry
    return None
