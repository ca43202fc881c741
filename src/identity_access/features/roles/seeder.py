"""Seed the permission catalog and global roles from settings."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.logging import log_context
from identity_access.features.permissions.names import unique_names
from identity_access.models import Permission, Role, RolePermission
from identity_access.settings import PermissionDefinition, RoleDefinition, Settings, get_settings

logger = logging.getLogger(__name__)


class RoleSeeder:
    """Upsert configured permissions and roles; idempotent."""

    def __init__(self, *, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    async def seed(self) -> None:
        permission_map = await self.sync_permissions(self._settings.permissions)
        for definition in self._settings.roles:
            await self._sync_role(definition, permission_map)
        await self._session.flush()
        logger.info(
            "roles.seed.success",
            extra=log_context(
                permissions=len(permission_map),
                roles=len(self._settings.roles),
            ),
        )

    async def sync_permissions(
        self, definitions: Iterable[PermissionDefinition]
    ) -> dict[str, UUID]:
        """Insert missing permissions and return a casefolded name -> id map."""

        result = await self._session.execute(select(Permission))
        existing = {permission.name.casefold(): permission for permission in result.scalars()}

        for definition in definitions:
            name = definition.name.strip()
            if not name:
                continue
            permission = existing.get(name.casefold())
            if permission is None:
                permission = Permission(name=name, description=definition.description)
                self._session.add(permission)
                existing[name.casefold()] = permission
            elif definition.description is not None:
                permission.description = definition.description

        await self._session.flush()
        return {key: permission.id for key, permission in existing.items()}

    async def assign_default_roles(self, user_id: UUID) -> None:
        """Add the configured default roles to a user's existing global roles."""

        defaults = unique_names(self._settings.default_user_roles)
        if not defaults:
            return

        from .assignments import RoleAssignmentService

        assignments = RoleAssignmentService(
            session=self._session,
            settings=self._settings,
            seeder=self,
        )
        current = await assignments.get_user_role_names(user_id)
        await assignments.assign_roles(user_id, [*current, *defaults])
        logger.info(
            "roles.defaults.assigned",
            extra=log_context(user_id=user_id, roles=defaults),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _sync_role(self, definition: RoleDefinition, permission_map: dict[str, UUID]) -> None:
        name = definition.name.strip()
        if not name:
            return

        result = await self._session.execute(
            select(Role).where(func.lower(Role.name) == name.lower()).limit(1)
        )
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(
                name=name,
                description=definition.description,
                is_system_role=definition.is_system_role,
            )
            self._session.add(role)
        else:
            if definition.description is not None and role.description != definition.description:
                role.description = definition.description
            if definition.is_system_role and not role.is_system_role:
                role.is_system_role = True
        await self._session.flush()

        desired: set[UUID] = set()
        for permission_name in unique_names(definition.permissions):
            permission_id = permission_map.get(permission_name.casefold())
            if permission_id is None:
                logger.warning(
                    "roles.seed.permission_missing",
                    extra=log_context(
                        role_id=role.id,
                        role_name=role.name,
                        permission=permission_name,
                    ),
                )
                continue
            desired.add(permission_id)

        current_result = await self._session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == role.id)
        )
        current = set(current_result.scalars().all())

        additions = desired - current
        removals = current - desired
        if removals:
            await self._session.execute(
                delete(RolePermission).where(
                    RolePermission.role_id == role.id,
                    RolePermission.permission_id.in_(removals),
                )
            )
        if additions:
            self._session.add_all(
                [RolePermission(role_id=role.id, permission_id=pid) for pid in additions]
            )


__all__ = ["RoleSeeder"]
