"""Global role assignments and the permissions they grant."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.errors import UnknownEntityError
from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context
from identity_access.features.permissions.names import merge_names, unique_names
from identity_access.models import Permission, Role, RolePermission, UserRole
from identity_access.settings import Settings, get_settings

if TYPE_CHECKING:
    from .seeder import RoleSeeder

logger = logging.getLogger(__name__)


class UnknownRoleError(UnknownEntityError):
    """Raised when role names cannot be resolved."""

    def __init__(self, missing: Iterable[str]) -> None:
        names = list(missing)
        super().__init__(
            f"Unknown roles: {', '.join(names)}",
            entity="role",
            identifiers=names,
        )
        self.missing = tuple(names)


class RoleAssignmentService:
    """Assign global roles to users and resolve their effective permissions."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings | None = None,
        seeder: RoleSeeder | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._seeder = seeder

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    async def assign_roles(self, user_id: UUID, role_names: Iterable[str]) -> None:
        """Make the user's global roles exactly ``role_names``.

        Unchanged assignments are left alone, so repeating a call is a no-op.
        """

        desired_names = unique_names(role_names)
        roles, missing = await self._resolve_roles(desired_names)
        if missing and self._settings.seed_roles_on_unknown:
            logger.info(
                "roles.assign.seeding",
                extra=log_context(user_id=user_id, missing=missing),
            )
            await self._get_seeder().seed()
            roles, missing = await self._resolve_roles(desired_names)
        if missing:
            logger.warning(
                "roles.assign.unknown",
                extra=log_context(user_id=user_id, missing=missing),
            )
            raise UnknownRoleError(missing)

        result = await self._session.execute(
            select(UserRole.role_id).where(UserRole.user_id == user_id)
        )
        current = set(result.scalars().all())
        desired = {role.id for role in roles}

        additions = desired - current
        removals = current - desired

        if removals:
            await self._session.execute(
                delete(UserRole).where(
                    UserRole.user_id == user_id,
                    UserRole.role_id.in_(removals),
                )
            )
        if additions:
            self._session.add_all(
                [UserRole(user_id=user_id, role_id=role_id) for role_id in additions]
            )
        await self._session.flush()

        logger.info(
            "roles.assign.success",
            extra=log_context(
                user_id=user_id,
                added=len(additions),
                removed=len(removals),
            ),
        )

    async def get_user_role_names(self, user_id: UUID) -> set[str]:
        if is_nil(user_id):
            return set()
        result = await self._session.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .distinct()
        )
        return merge_names(result.scalars().all())

    async def get_effective_permissions(self, user_id: UUID) -> set[str]:
        """Return every permission reachable through the user's global roles."""

        if is_nil(user_id):
            return set()
        result = await self._session.execute(
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .where(UserRole.user_id == user_id)
            .distinct()
        )
        return merge_names(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolve_roles(self, names: list[str]) -> tuple[list[Role], list[str]]:
        if not names:
            return [], []
        lowered = [name.lower() for name in names]
        result = await self._session.execute(
            select(Role).where(func.lower(Role.name).in_(lowered))
        )
        roles = list(result.scalars().all())
        found = {role.name.lower() for role in roles}
        missing = [name for name in names if name.lower() not in found]
        return roles, missing

    def _get_seeder(self) -> RoleSeeder:
        if self._seeder is None:
            from .seeder import RoleSeeder

            self._seeder = RoleSeeder(session=self._session, settings=self._settings)
        return self._seeder


__all__ = ["RoleAssignmentService", "UnknownRoleError"]
