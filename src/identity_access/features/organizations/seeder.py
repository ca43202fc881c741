"""Seed the shared organization roles from settings."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.features.permissions.names import unique_names
from identity_access.models import OrganizationRole, OrganizationRolePermission, Permission
from identity_access.settings import OrganizationRoleDefinition, Settings, get_settings

logger = logging.getLogger(__name__)


class OrganizationRoleSeeder:
    """Upsert shared (tenant-less, organization-less) roles and their links.

    Permissions must already exist in the catalog; missing ones are logged and
    skipped.
    """

    def __init__(self, *, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    async def seed(self) -> None:
        created = updated = added = removed = 0
        for definition in self._settings.organization_roles:
            name = definition.name.strip()
            if not name:
                continue
            role, was_created, was_updated = await self._ensure_role(name, definition)
            created += int(was_created)
            updated += int(was_updated)
            role_added, role_removed = await self._sync_permissions(role, definition)
            added += role_added
            removed += role_removed

        await self._session.flush()
        logger.info(
            "organizations.roles.seed.success",
            extra=log_context(
                roles_created=created,
                roles_updated=updated,
                links_added=added,
                links_removed=removed,
            ),
        )

    async def _ensure_role(
        self,
        name: str,
        definition: OrganizationRoleDefinition,
    ) -> tuple[OrganizationRole, bool, bool]:
        result = await self._session.execute(
            select(OrganizationRole)
            .where(
                OrganizationRole.organization_id.is_(None),
                OrganizationRole.tenant_id.is_(None),
                func.lower(OrganizationRole.name) == name.lower(),
            )
            .limit(1)
        )
        role = result.scalar_one_or_none()
        description = definition.description.strip() if definition.description else None

        if role is None:
            role = OrganizationRole(
                name=name,
                description=description,
                is_system_role=definition.is_system_role,
            )
            self._session.add(role)
            await self._session.flush()
            return role, True, False

        changed = False
        if role.description != description:
            role.description = description
            changed = True
        # System flags are never cleared once set.
        if definition.is_system_role and not role.is_system_role:
            role.is_system_role = True
            changed = True
        if changed:
            role.updated_at = utc_now()
            await self._session.flush()
        return role, False, changed

    async def _sync_permissions(
        self,
        role: OrganizationRole,
        definition: OrganizationRoleDefinition,
    ) -> tuple[int, int]:
        names = unique_names(definition.permissions)
        desired: set[UUID] = set()
        if names:
            result = await self._session.execute(
                select(Permission.name, Permission.id).where(
                    func.lower(Permission.name).in_([name.lower() for name in names])
                )
            )
            found = {row.name.lower(): row.id for row in result}
            missing = [name for name in names if name.lower() not in found]
            if missing:
                logger.warning(
                    "organizations.roles.seed.permission_missing",
                    extra=log_context(role_id=role.id, role_name=role.name, permissions=missing),
                )
            desired = set(found.values())

        current_result = await self._session.execute(
            select(OrganizationRolePermission.permission_id).where(
                OrganizationRolePermission.role_id == role.id,
                OrganizationRolePermission.organization_id.is_(None),
                OrganizationRolePermission.tenant_id.is_(None),
            )
        )
        current = set(current_result.scalars().all())

        additions = desired - current
        removals = current - desired
        if removals:
            await self._session.execute(
                delete(OrganizationRolePermission).where(
                    OrganizationRolePermission.role_id == role.id,
                    OrganizationRolePermission.organization_id.is_(None),
                    OrganizationRolePermission.tenant_id.is_(None),
                    OrganizationRolePermission.permission_id.in_(removals),
                )
            )
        if additions:
            self._session.add_all(
                [
                    OrganizationRolePermission(role_id=role.id, permission_id=permission_id)
                    for permission_id in additions
                ]
            )
        return len(additions), len(removals)


__all__ = ["OrganizationRoleSeeder"]
