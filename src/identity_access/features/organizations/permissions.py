"""Resolve a member's permissions within one organization."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context
from identity_access.features.permissions.names import merge_names
from identity_access.features.permissions.resolver import RolePermissionProvider
from identity_access.models import (
    OrganizationMembership,
    OrganizationRoleAssignment,
    OrganizationRolePermission,
    Permission,
)

logger = logging.getLogger(__name__)


class OrganizationPermissionResolver:
    """Global role permissions plus organization role permissions for a member."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        role_permissions: RolePermissionProvider,
    ) -> None:
        self._session = session
        self._role_permissions = role_permissions

    async def get_permissions(self, organization_id: UUID, user_id: UUID | None) -> set[str]:
        if is_nil(user_id) or not await self._is_member(organization_id, user_id):
            return set()
        global_permissions = await self._role_permissions.get_effective_permissions(user_id)
        organization_permissions = await self._organization_permissions(organization_id, user_id)
        return merge_names(global_permissions, organization_permissions)

    async def get_organization_permissions(
        self, organization_id: UUID, user_id: UUID | None
    ) -> set[str]:
        if is_nil(user_id) or not await self._is_member(organization_id, user_id):
            return set()
        return await self._organization_permissions(organization_id, user_id)

    async def _is_member(self, organization_id: UUID, user_id: UUID) -> bool:
        membership = await self._session.scalar(
            select(OrganizationMembership.user_id).where(
                OrganizationMembership.organization_id == organization_id,
                OrganizationMembership.user_id == user_id,
            )
        )
        return membership is not None

    async def _organization_permissions(self, organization_id: UUID, user_id: UUID) -> set[str]:
        result = await self._session.execute(
            select(Permission.name)
            .join(
                OrganizationRolePermission,
                OrganizationRolePermission.permission_id == Permission.id,
            )
            .join(
                OrganizationRoleAssignment,
                OrganizationRoleAssignment.role_id == OrganizationRolePermission.role_id,
            )
            .where(
                OrganizationRoleAssignment.organization_id == organization_id,
                OrganizationRoleAssignment.user_id == user_id,
                or_(
                    OrganizationRolePermission.organization_id.is_(None),
                    OrganizationRolePermission.organization_id == organization_id,
                ),
            )
            .distinct()
        )
        permissions = merge_names(result.scalars().all())
        logger.debug(
            "organizations.permissions.resolved",
            extra=log_context(
                organization_id=organization_id,
                user_id=user_id,
                count=len(permissions),
            ),
        )
        return permissions


__all__ = ["OrganizationPermissionResolver"]
