"""Organization roles and their scoped permission links.

A role's permission links carry their own ``organization_id``. Links with a
null organization apply wherever the role is used; organization-specific links
add to them. Updating permissions for one organization only ever touches links
scoped to exactly that organization.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.db.concurrency import ensure_stamp, flush_or_conflict
from identity_access.features.permissions.names import merge_names, unique_names
from identity_access.models import (
    Organization,
    OrganizationRole,
    OrganizationRoleAssignment,
    OrganizationRolePermission,
    Permission,
)
from identity_access.settings import Settings, get_settings

from .errors import (
    OrganizationNotFoundError,
    OrganizationRoleConflictError,
    OrganizationRoleImmutableError,
    OrganizationRoleInUseError,
    OrganizationRoleNotFoundError,
    OrganizationValidationError,
)
from .schemas import OrganizationRoleCreate, OrganizationRoleUpdate, RolePermissionSet

logger = logging.getLogger(__name__)

_STALE_ROLE_MESSAGE = "Organization role was modified by another process."


def _tenant_clause(column, tenant_id: UUID | None):
    if tenant_id is None:
        return column.is_(None)
    return or_(column.is_(None), column == tenant_id)


def _same_value(column, value: UUID | None):
    return column.is_(None) if value is None else column == value


def _link_tenant(role: OrganizationRole, organization: Organization) -> UUID | None:
    return organization.tenant_id if organization.tenant_id is not None else role.tenant_id


class OrganizationRoleService:
    """Manage organization roles and their (role, organization) permission links."""

    def __init__(self, *, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def create(self, request: OrganizationRoleCreate) -> OrganizationRole:
        name = self._normalize_name(request.name)
        description = self._normalize_description(request.description)

        tenant_id = request.tenant_id
        if request.organization_id is not None:
            organization = await self._session.get(Organization, request.organization_id)
            if organization is None:
                raise OrganizationNotFoundError(request.organization_id)
            if tenant_id is not None and organization.tenant_id != tenant_id:
                raise OrganizationValidationError("Organization belongs to a different tenant.")
            tenant_id = organization.tenant_id

        await self._ensure_name_available(
            name,
            tenant_id=tenant_id,
            organization_id=request.organization_id,
        )

        role = OrganizationRole(
            organization_id=request.organization_id,
            tenant_id=tenant_id,
            name=name,
            description=description,
            is_system_role=request.is_system_role,
        )
        self._session.add(role)
        await self._session.flush()

        logger.info(
            "organizations.roles.create.success",
            extra=log_context(
                tenant_id=tenant_id,
                organization_id=request.organization_id,
                role_id=role.id,
                role_name=role.name,
            ),
        )
        return role

    async def get_role(self, role_id: UUID) -> OrganizationRole | None:
        return await self._session.get(OrganizationRole, role_id)

    async def list_roles(
        self,
        *,
        tenant_id: UUID | None = None,
        organization_id: UUID | None = None,
    ) -> list[OrganizationRole]:
        """Roles visible to the scope: shared roles first, then by name."""

        stmt: Select[tuple[OrganizationRole]] = (
            select(OrganizationRole)
            .where(_tenant_clause(OrganizationRole.tenant_id, tenant_id))
            .order_by(OrganizationRole.organization_id.is_not(None), OrganizationRole.name)
        )
        if organization_id is None:
            stmt = stmt.where(OrganizationRole.organization_id.is_(None))
        else:
            stmt = stmt.where(
                or_(
                    OrganizationRole.organization_id.is_(None),
                    OrganizationRole.organization_id == organization_id,
                )
            )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, role_id: UUID, request: OrganizationRoleUpdate) -> OrganizationRole:
        role = await self._require_role(role_id)
        ensure_stamp(role.concurrency_stamp, request.concurrency_stamp, message=_STALE_ROLE_MESSAGE)

        name = self._normalize_name(request.name)
        description = self._normalize_description(request.description)
        if role.is_system_role:
            if name != role.name:
                raise OrganizationRoleImmutableError("System roles cannot be renamed.")
            if not request.is_system_role:
                raise OrganizationRoleImmutableError("System roles cannot be downgraded.")
        if name.lower() != role.name.lower():
            await self._ensure_name_available(
                name,
                tenant_id=role.tenant_id,
                organization_id=role.organization_id,
                exclude_id=role.id,
            )

        role.name = name
        role.description = description
        role.is_system_role = role.is_system_role or request.is_system_role
        role.updated_at = utc_now()
        await flush_or_conflict(self._session, message=_STALE_ROLE_MESSAGE)

        logger.info(
            "organizations.roles.update.success",
            extra=log_context(
                organization_id=role.organization_id,
                role_id=role.id,
                role_name=role.name,
            ),
        )
        return role

    async def delete(self, role_id: UUID, *, concurrency_stamp: str | None = None) -> None:
        """Delete a role together with every permission link it owns."""

        role = await self._require_role(role_id)
        if concurrency_stamp is not None:
            ensure_stamp(role.concurrency_stamp, concurrency_stamp, message=_STALE_ROLE_MESSAGE)
        if role.is_system_role:
            raise OrganizationRoleImmutableError("System roles cannot be deleted.")

        assigned = await self._session.scalar(
            select(func.count())
            .select_from(OrganizationRoleAssignment)
            .where(OrganizationRoleAssignment.role_id == role_id)
        )
        if assigned:
            raise OrganizationRoleInUseError("Role is assigned to one or more members.")

        await self._session.execute(
            delete(OrganizationRolePermission).where(OrganizationRolePermission.role_id == role_id)
        )
        await self._session.delete(role)
        await flush_or_conflict(self._session, message=_STALE_ROLE_MESSAGE)

        logger.info(
            "organizations.roles.delete.success",
            extra=log_context(organization_id=role.organization_id, role_id=role_id),
        )

    async def resolve_assignable_roles(
        self,
        organization: Organization,
        role_ids: Iterable[UUID],
    ) -> list[OrganizationRole]:
        """Load roles a member of ``organization`` may hold, or raise."""

        requested = list(dict.fromkeys(role_ids))
        if not requested:
            return []

        result = await self._session.execute(
            select(OrganizationRole).where(OrganizationRole.id.in_(requested))
        )
        roles = {role.id: role for role in result.scalars().all()}
        missing = [role_id for role_id in requested if role_id not in roles]
        if missing:
            raise OrganizationRoleNotFoundError(missing)

        for role in roles.values():
            if role.organization_id is not None and role.organization_id != organization.id:
                raise OrganizationValidationError(
                    f"Role '{role.name}' belongs to a different organization."
                )
            if role.tenant_id is not None and role.tenant_id != organization.tenant_id:
                raise OrganizationValidationError(
                    f"Role '{role.name}' belongs to a different tenant."
                )
        return [roles[role_id] for role_id in requested]

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def get_permissions(self, role_id: UUID, organization_id: UUID) -> RolePermissionSet:
        role = await self._require_role(role_id)
        organization = await self._require_organization(organization_id)
        tenant_id = _link_tenant(role, organization)
        result = await self._session.execute(
            select(Permission.name, OrganizationRolePermission.organization_id)
            .join(Permission, Permission.id == OrganizationRolePermission.permission_id)
            .where(
                OrganizationRolePermission.role_id == role.id,
                or_(
                    OrganizationRolePermission.organization_id.is_(None),
                    OrganizationRolePermission.organization_id == organization_id,
                ),
                _tenant_clause(OrganizationRolePermission.tenant_id, tenant_id),
            )
        )
        rows = result.all()
        explicit = merge_names(row.name for row in rows if row.organization_id == organization_id)
        effective = merge_names(explicit, (row.name for row in rows))
        return RolePermissionSet(explicit=frozenset(explicit), effective=frozenset(effective))

    async def update_permissions(
        self,
        role_id: UUID,
        organization_id: UUID,
        permission_names: Iterable[str],
    ) -> RolePermissionSet:
        """Replace the links scoped to exactly (role, organization).

        Shared links and other organizations' links are left alone. Unknown
        permission names are skipped.
        """

        role = await self._require_role(role_id)
        organization = await self._require_organization(organization_id)
        if role.organization_id is not None and role.organization_id != organization_id:
            raise OrganizationValidationError("Role belongs to a different organization.")
        tenant_id = _link_tenant(role, organization)

        desired = await self._permission_ids(
            unique_names(permission_names),
            role_id=role.id,
            organization_id=organization_id,
        )

        result = await self._session.execute(
            select(OrganizationRolePermission.permission_id).where(
                OrganizationRolePermission.role_id == role.id,
                OrganizationRolePermission.organization_id == organization_id,
            )
        )
        current = set(result.scalars().all())

        additions = desired - current
        removals = current - desired

        if removals:
            await self._session.execute(
                delete(OrganizationRolePermission).where(
                    OrganizationRolePermission.role_id == role.id,
                    OrganizationRolePermission.organization_id == organization_id,
                    OrganizationRolePermission.permission_id.in_(removals),
                )
            )
        if additions:
            self._session.add_all(
                [
                    OrganizationRolePermission(
                        role_id=role.id,
                        permission_id=permission_id,
                        tenant_id=tenant_id,
                        organization_id=organization_id,
                    )
                    for permission_id in additions
                ]
            )
        await self._session.flush()

        logger.info(
            "organizations.roles.permissions.updated",
            extra=log_context(
                organization_id=organization_id,
                role_id=role.id,
                added=len(additions),
                removed=len(removals),
            ),
        )
        return await self.get_permissions(role.id, organization_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_role(self, role_id: UUID) -> OrganizationRole:
        role = await self.get_role(role_id)
        if role is None:
            raise OrganizationRoleNotFoundError([role_id])
        return role

    async def _require_organization(self, organization_id: UUID) -> Organization:
        organization = await self._session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)
        return organization

    def _normalize_name(self, value: str | None) -> str:
        candidate = (value or "").strip()
        if not candidate:
            raise OrganizationValidationError("Role name is required")
        limit = self._settings.organization_role_name_max_length
        if len(candidate) > limit:
            raise OrganizationValidationError(f"Role name must be {limit} characters or fewer")
        return candidate

    def _normalize_description(self, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip()
        limit = self._settings.organization_role_description_max_length
        if len(candidate) > limit:
            raise OrganizationValidationError(
                f"Role description must be {limit} characters or fewer"
            )
        return candidate or None

    async def _ensure_name_available(
        self,
        name: str,
        *,
        tenant_id: UUID | None,
        organization_id: UUID | None,
        exclude_id: UUID | None = None,
    ) -> None:
        stmt = select(OrganizationRole.id).where(
            func.lower(OrganizationRole.name) == name.lower(),
            _same_value(OrganizationRole.tenant_id, tenant_id),
            _same_value(OrganizationRole.organization_id, organization_id),
        )
        if exclude_id is not None:
            stmt = stmt.where(OrganizationRole.id != exclude_id)
        if await self._session.scalar(stmt.limit(1)) is not None:
            raise OrganizationRoleConflictError(f"Role '{name}' already exists.")

    async def _permission_ids(
        self,
        names: Sequence[str],
        *,
        role_id: UUID,
        organization_id: UUID,
    ) -> set[UUID]:
        if not names:
            return set()
        result = await self._session.execute(
            select(Permission.name, Permission.id).where(
                func.lower(Permission.name).in_([name.lower() for name in names])
            )
        )
        found = {row.name.lower(): row.id for row in result}
        unknown = [name for name in names if name.lower() not in found]
        if unknown:
            logger.warning(
                "organizations.roles.permissions.unknown",
                extra=log_context(
                    organization_id=organization_id,
                    role_id=role_id,
                    permissions=unknown,
                ),
            )
        return {found[name.lower()] for name in names if name.lower() in found}


__all__ = ["OrganizationRoleService"]
