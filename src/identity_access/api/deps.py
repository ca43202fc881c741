"""FastAPI dependency wiring for the access-control services."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.db.database import get_db_session
from identity_access.features.organizations.context import (
    OrganizationAdditionalPermissionSource,
    OrganizationContextAccessor,
)
from identity_access.features.organizations.permissions import OrganizationPermissionResolver
from identity_access.features.organizations.roles import OrganizationRoleService
from identity_access.features.permissions.resolver import CompositePermissionResolver
from identity_access.features.roles.assignments import RoleAssignmentService
from identity_access.settings import Settings, get_settings

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_role_assignment_service(
    session: SessionDep, settings: SettingsDep
) -> RoleAssignmentService:
    return RoleAssignmentService(session=session, settings=settings)


RoleAssignmentServiceDep = Annotated[RoleAssignmentService, Depends(get_role_assignment_service)]


def get_organization_permission_resolver(
    session: SessionDep,
    assignments: RoleAssignmentServiceDep,
) -> OrganizationPermissionResolver:
    return OrganizationPermissionResolver(session=session, role_permissions=assignments)


OrganizationPermissionResolverDep = Annotated[
    OrganizationPermissionResolver, Depends(get_organization_permission_resolver)
]


def get_organization_context_accessor() -> OrganizationContextAccessor:
    return OrganizationContextAccessor()


OrganizationContextAccessorDep = Annotated[
    OrganizationContextAccessor, Depends(get_organization_context_accessor)
]


def get_permission_resolver(
    assignments: RoleAssignmentServiceDep,
    organization_resolver: OrganizationPermissionResolverDep,
    accessor: OrganizationContextAccessorDep,
) -> CompositePermissionResolver:
    """Global role permissions plus those of the organization bound to the request."""

    return CompositePermissionResolver(
        role_permissions=assignments,
        sources=[
            OrganizationAdditionalPermissionSource(
                accessor=accessor,
                resolver=organization_resolver,
            )
        ],
    )


def get_organization_role_service(
    session: SessionDep, settings: SettingsDep
) -> OrganizationRoleService:
    return OrganizationRoleService(session=session, settings=settings)


PermissionResolverDep = Annotated[CompositePermissionResolver, Depends(get_permission_resolver)]
OrganizationRoleServiceDep = Annotated[
    OrganizationRoleService, Depends(get_organization_role_service)
]


__all__ = [
    "OrganizationContextAccessorDep",
    "OrganizationPermissionResolverDep",
    "OrganizationRoleServiceDep",
    "PermissionResolverDep",
    "RoleAssignmentServiceDep",
    "SessionDep",
    "SettingsDep",
    "get_organization_context_accessor",
    "get_organization_permission_resolver",
    "get_organization_role_service",
    "get_permission_resolver",
    "get_role_assignment_service",
]
