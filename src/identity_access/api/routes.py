"""Read-only permission endpoints."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from identity_access.features.organizations.schemas import PermissionListOut, RolePermissionsOut
from identity_access.features.permissions.names import sort_names

from .deps import (
    OrganizationPermissionResolverDep,
    OrganizationRoleServiceDep,
    PermissionResolverDep,
)

router = APIRouter(tags=["permissions"])

UserPath = Annotated[UUID, Path(description="User identifier", alias="userId")]
OrganizationPath = Annotated[
    UUID, Path(description="Organization identifier", alias="organizationId")
]
RolePath = Annotated[UUID, Path(description="Organization role identifier", alias="roleId")]


@router.get(
    "/users/{userId}/permissions",
    response_model=PermissionListOut,
    response_model_exclude_none=True,
    summary="Effective permissions for a user",
)
async def read_user_permissions(
    user_id: UserPath,
    resolver: PermissionResolverDep,
) -> PermissionListOut:
    permissions = await resolver.get_effective_permissions(user_id)
    return PermissionListOut(user_id=user_id, permissions=sort_names(permissions))


@router.get(
    "/organizations/{organizationId}/users/{userId}/permissions",
    response_model=PermissionListOut,
    response_model_exclude_none=True,
    summary="Effective permissions for an organization member",
)
async def read_member_permissions(
    organization_id: OrganizationPath,
    user_id: UserPath,
    resolver: OrganizationPermissionResolverDep,
) -> PermissionListOut:
    permissions = await resolver.get_permissions(organization_id, user_id)
    return PermissionListOut(
        user_id=user_id,
        organization_id=organization_id,
        permissions=sort_names(permissions),
    )


@router.get(
    "/organizations/{organizationId}/roles/{roleId}/permissions",
    response_model=RolePermissionsOut,
    summary="Explicit and effective permissions of an organization role",
)
async def read_role_permissions(
    organization_id: OrganizationPath,
    role_id: RolePath,
    service: OrganizationRoleServiceDep,
) -> RolePermissionsOut:
    permission_set = await service.get_permissions(role_id, organization_id)
    return RolePermissionsOut(
        role_id=role_id,
        organization_id=organization_id,
        explicit=sort_names(permission_set.explicit),
        effective=sort_names(permission_set.effective),
    )


__all__ = ["router"]
