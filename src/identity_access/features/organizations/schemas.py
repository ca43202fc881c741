"""Schemas and value objects for organization operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import Field

from identity_access.common.schema import BaseSchema
from identity_access.models import OrganizationMembership, OrganizationStatus


class OrganizationCreate(BaseSchema):
    """Payload for creating an organization."""

    tenant_id: UUID | None = None
    slug: str
    display_name: str
    metadata: dict[str, str] = Field(default_factory=dict)
    created_by: UUID | None = None


class OrganizationUpdate(BaseSchema):
    """Partial update; ``None`` leaves a field unchanged."""

    display_name: str | None = None
    metadata: dict[str, str] | None = None
    status: OrganizationStatus | None = None
    updated_by: UUID | None = None


class OrganizationRoleCreate(BaseSchema):
    """Payload for creating an organization role; no organization means shared."""

    organization_id: UUID | None = None
    tenant_id: UUID | None = None
    name: str
    description: str | None = None
    is_system_role: bool = False


class OrganizationRoleUpdate(BaseSchema):
    concurrency_stamp: str
    name: str
    description: str | None = None
    is_system_role: bool = False


class PermissionListOut(BaseSchema):
    user_id: UUID
    organization_id: UUID | None = None
    permissions: list[str]


class RolePermissionsOut(BaseSchema):
    role_id: UUID
    organization_id: UUID
    explicit: list[str]
    effective: list[str]


@dataclass(frozen=True, slots=True)
class RolePermissionSet:
    """Permissions of an organization role as seen from one organization.

    ``explicit`` holds links scoped to that organization; ``effective`` adds the
    shared (null-scoped) links.
    """

    explicit: frozenset[str]
    effective: frozenset[str]


@dataclass(frozen=True, slots=True)
class InvitationAcceptor:
    """The user redeeming an invitation."""

    user_id: UUID
    email: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class InvitationAcceptanceResult:
    organization_id: UUID
    user_id: UUID
    membership: OrganizationMembership
    was_existing_member: bool
    was_existing_user: bool


__all__ = [
    "InvitationAcceptanceResult",
    "InvitationAcceptor",
    "OrganizationCreate",
    "OrganizationRoleCreate",
    "OrganizationRoleUpdate",
    "OrganizationUpdate",
    "PermissionListOut",
    "RolePermissionSet",
    "RolePermissionsOut",
]
