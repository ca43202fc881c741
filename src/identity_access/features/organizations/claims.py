"""Organization claims: current organization and membership list."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context
from identity_access.features.permissions.claims import Claim, ClaimsPrincipal, PermissionClaimFormatter
from identity_access.models import OrganizationMembership

from .context import OrganizationContextAccessor

logger = logging.getLogger(__name__)

ORGANIZATION_ID_CLAIM = "org_id"
ORGANIZATION_SLUG_CLAIM = "org_slug"
ORGANIZATION_NAME_CLAIM = "org_name"
ORGANIZATION_MEMBERSHIPS_CLAIM = "org_memberships"


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        return None


def get_organization_id(principal: ClaimsPrincipal) -> UUID | None:
    claim = principal.find_first(ORGANIZATION_ID_CLAIM)
    return _parse_uuid(claim.value if claim else None)


def get_organization_memberships(principal: ClaimsPrincipal) -> list[UUID]:
    claim = principal.find_first(ORGANIZATION_MEMBERSHIPS_CLAIM)
    if claim is None:
        return []
    parsed = (_parse_uuid(value) for value in claim.value.split())
    return list(dict.fromkeys(value for value in parsed if value is not None))


def has_organization_membership(principal: ClaimsPrincipal, organization_id: UUID) -> bool:
    if is_nil(organization_id):
        return False
    return organization_id in get_organization_memberships(principal)


class OrganizationClaimFormatter(PermissionClaimFormatter):
    """Permission claim plus the scoped organization's id, slug and name."""

    def __init__(self, *, accessor: OrganizationContextAccessor) -> None:
        self._accessor = accessor

    def format(self, permissions: Iterable[str]) -> list[Claim]:
        claims = super().format(permissions)
        context = self._accessor.current
        if context is None:
            return claims
        claims.append(Claim(ORGANIZATION_ID_CLAIM, str(context.organization_id)))
        if context.slug and context.slug.strip():
            claims.append(Claim(ORGANIZATION_SLUG_CLAIM, context.slug))
        if context.display_name and context.display_name.strip():
            claims.append(Claim(ORGANIZATION_NAME_CLAIM, context.display_name))
        return claims


class OrganizationMembershipClaimsAugmentor:
    """Replace the ``org_memberships`` claim with the user's organization ids."""

    def __init__(self, *, session: AsyncSession) -> None:
        self._session = session

    async def augment(self, user_id: UUID | None, principal: ClaimsPrincipal) -> None:
        if is_nil(user_id):
            return
        result = await self._session.execute(
            select(OrganizationMembership.organization_id)
            .where(OrganizationMembership.user_id == user_id)
            .distinct()
            .order_by(OrganizationMembership.organization_id)
        )
        organization_ids = list(result.scalars().all())
        if not organization_ids:
            return

        principal.replace(
            ORGANIZATION_MEMBERSHIPS_CLAIM,
            " ".join(str(organization_id) for organization_id in organization_ids),
        )
        logger.debug(
            "organizations.claims.memberships.augmented",
            extra=log_context(user_id=user_id, count=len(organization_ids)),
        )


__all__ = [
    "ORGANIZATION_ID_CLAIM",
    "ORGANIZATION_MEMBERSHIPS_CLAIM",
    "ORGANIZATION_NAME_CLAIM",
    "ORGANIZATION_SLUG_CLAIM",
    "OrganizationClaimFormatter",
    "OrganizationMembershipClaimsAugmentor",
    "get_organization_id",
    "get_organization_memberships",
    "has_organization_membership",
]
