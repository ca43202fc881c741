"""Administrative operations on global roles and the permission catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from identity_access.common.errors import (
    ConflictError,
    InvalidRequestError,
    UnknownEntityError,
)
from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.db.concurrency import ensure_stamp, flush_or_conflict
from identity_access.features.permissions.names import sort_names, unique_names
from identity_access.models import Permission, Role, RolePermission, UserRole
from identity_access.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_STALE_ROLE_MESSAGE = "Role was modified by another process."

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RoleValidationError(InvalidRequestError):
    """Raised when a role payload is invalid."""


class RoleNotFoundError(UnknownEntityError):
    """Raised when a role cannot be located."""

    def __init__(self, role_id: UUID) -> None:
        super().__init__("Role not found", entity="role", identifiers=[role_id])


class PermissionNotFoundError(UnknownEntityError):
    """Raised when permission names are not in the catalog."""

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(
            f"Permissions not found: {', '.join(missing)}",
            entity="permission",
            identifiers=missing,
        )


class RoleConflictError(ConflictError):
    """Raised when a role operation would violate uniqueness constraints."""


class RoleImmutableError(ConflictError):
    """Raised when attempting a forbidden change to a system role."""


class RoleInUseError(ConflictError):
    """Raised when deleting a role that is still assigned."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _normalize_role_name(value: str | None, *, max_length: int) -> str:
    candidate = (value or "").strip()
    if not candidate:
        raise RoleValidationError("Role name is required")
    if len(candidate) > max_length:
        raise RoleValidationError(f"Role name must be {max_length} characters or fewer")
    return candidate


def _normalize_description(value: str | None, *, max_length: int) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    if len(candidate) > max_length:
        raise RoleValidationError(f"Role description must be {max_length} characters or fewer")
    return candidate or None


def role_permission_names(role: Role) -> list[str]:
    """Sorted permission names of a role loaded with its permission links."""

    return sort_names(link.permission.name for link in role.permissions if link.permission)


class RoleService:
    """CRUD for global roles with optimistic concurrency."""

    def __init__(self, *, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    # ------------- permission catalog ------------

    async def list_permissions(self) -> list[Permission]:
        result = await self._session.execute(select(Permission).order_by(Permission.name))
        return list(result.scalars().all())

    # ------------- role CRUD ---------------------

    async def list_roles(self) -> list[Role]:
        stmt = (
            select(Role)
            .options(selectinload(Role.permissions).selectinload(RolePermission.permission))
            .order_by(Role.name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_role(self, role_id: UUID) -> Role | None:
        stmt = (
            select(Role)
            .options(selectinload(Role.permissions).selectinload(RolePermission.permission))
            .where(Role.id == role_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_role(
        self,
        *,
        name: str,
        description: str | None = None,
        is_system_role: bool = False,
        permissions: Iterable[str] = (),
    ) -> Role:
        normalized_name = _normalize_role_name(
            name, max_length=self._settings.role_name_max_length
        )
        normalized_description = _normalize_description(
            description, max_length=self._settings.role_description_max_length
        )
        await self._ensure_name_available(normalized_name)
        permission_map = await self._permission_id_map(permissions)

        role = Role(
            name=normalized_name,
            description=normalized_description,
            is_system_role=is_system_role,
        )
        self._session.add(role)
        await self._session.flush()
        await self._sync_role_permissions(role=role, permission_ids=set(permission_map.values()))

        logger.info(
            "roles.create.success",
            extra=log_context(role_id=role.id, role_name=role.name),
        )
        return await self._require_role(role.id)

    async def update_role(
        self,
        *,
        role_id: UUID,
        concurrency_stamp: str | None,
        name: str,
        description: str | None,
        is_system_role: bool,
        permissions: Iterable[str] | None = None,
    ) -> Role:
        role = await self._require_role(role_id)
        ensure_stamp(role.concurrency_stamp, concurrency_stamp, message=_STALE_ROLE_MESSAGE)

        normalized_name = _normalize_role_name(
            name, max_length=self._settings.role_name_max_length
        )
        normalized_description = _normalize_description(
            description, max_length=self._settings.role_description_max_length
        )
        if role.is_system_role:
            if normalized_name != role.name:
                raise RoleImmutableError("System roles cannot be renamed.")
            if not is_system_role:
                raise RoleImmutableError("System roles cannot be downgraded.")
        if normalized_name.lower() != role.name.lower():
            await self._ensure_name_available(normalized_name, exclude_id=role.id)
        permission_map = (
            await self._permission_id_map(permissions) if permissions is not None else None
        )

        role.name = normalized_name
        role.description = normalized_description
        role.is_system_role = role.is_system_role or is_system_role
        # Always touch the row so the concurrency stamp rotates.
        role.updated_at = utc_now()
        await flush_or_conflict(self._session, message=_STALE_ROLE_MESSAGE)

        if permission_map is not None:
            await self._sync_role_permissions(
                role=role, permission_ids=set(permission_map.values())
            )

        logger.info(
            "roles.update.success",
            extra=log_context(role_id=role.id, role_name=role.name),
        )
        return await self._require_role(role.id)

    async def delete_role(self, *, role_id: UUID, concurrency_stamp: str | None = None) -> None:
        role = await self._require_role(role_id)
        if concurrency_stamp is not None:
            ensure_stamp(role.concurrency_stamp, concurrency_stamp, message=_STALE_ROLE_MESSAGE)
        if role.is_system_role:
            raise RoleImmutableError("System roles cannot be deleted.")

        assigned = await self._session.scalar(
            select(func.count()).select_from(UserRole).where(UserRole.role_id == role_id)
        )
        if assigned:
            raise RoleInUseError("Role is assigned to one or more users.")

        await self._session.delete(role)
        await flush_or_conflict(self._session, message=_STALE_ROLE_MESSAGE)
        logger.info("roles.delete.success", extra=log_context(role_id=role_id))

    # ------------- helpers -----------------------

    async def _require_role(self, role_id: UUID) -> Role:
        role = await self.get_role(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        return role

    async def _ensure_name_available(self, name: str, *, exclude_id: UUID | None = None) -> None:
        stmt = select(Role.id).where(func.lower(Role.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        existing = await self._session.scalar(stmt.limit(1))
        if existing is not None:
            raise RoleConflictError(f"Role '{name}' already exists.")

    async def _permission_id_map(self, names: Iterable[str]) -> dict[str, UUID]:
        requested = unique_names(names)
        if not requested:
            return {}
        result = await self._session.execute(
            select(Permission.name, Permission.id).where(
                func.lower(Permission.name).in_([name.lower() for name in requested])
            )
        )
        found = {row.name.lower(): row.id for row in result}
        missing = [name for name in requested if name.lower() not in found]
        if missing:
            raise PermissionNotFoundError(missing)
        return found

    async def _sync_role_permissions(self, *, role: Role, permission_ids: set[UUID]) -> None:
        result = await self._session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == role.id)
        )
        current = set(result.scalars().all())

        additions = permission_ids - current
        removals = current - permission_ids

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
        await self._session.flush()


__all__ = [
    "PermissionNotFoundError",
    "RoleConflictError",
    "RoleImmutableError",
    "RoleInUseError",
    "RoleNotFoundError",
    "RoleService",
    "RoleValidationError",
    "role_permission_names",
]
