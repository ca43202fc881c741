"""Organization models: organizations, memberships, scoped roles, invitations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    String,
    UniqueConstraint,
    false,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from identity_access.common.ids import new_concurrency_stamp
from identity_access.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_values, utc_now
from identity_access.db.types import UTCDateTime, UUIDType


class OrganizationStatus(str, Enum):
    """Lifecycle status of an organization."""

    ACTIVE = "active"
    ARCHIVED = "archived"


organization_status_enum = SAEnum(
    OrganizationStatus,
    name="organization_status",
    native_enum=False,
    length=20,
    values_callable=enum_values,
)


class Organization(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tenant-scoped organization."""

    __tablename__ = "organizations"

    tenant_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    slug: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    status: Mapped[OrganizationStatus] = mapped_column(
        organization_status_enum,
        nullable=False,
        default=OrganizationStatus.ACTIVE,
    )
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_organizations_tenant_slug"),
        Index("ix_organizations_tenant_display_name", "tenant_id", "display_name"),
    )


class OrganizationMembership(TimestampMixin, Base):
    """A user's membership in an organization."""

    __tablename__ = "organization_memberships"

    organization_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(UUIDType(), primary_key=True)
    tenant_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)

    organization: Mapped[Organization] = relationship("Organization")
    role_assignments: Mapped[list[OrganizationRoleAssignment]] = relationship(
        "OrganizationRoleAssignment",
        back_populates="membership",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_organization_memberships_user", "user_id"),)


class OrganizationRole(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Role usable inside organizations.

    ``organization_id`` is null for shared roles visible to every organization
    of the tenant.
    """

    __tablename__ = "organization_roles"

    organization_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    tenant_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_system_role: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    concurrency_stamp: Mapped[str] = mapped_column(String(32), nullable=False)

    __mapper_args__ = {
        "version_id_col": concurrency_stamp,
        "version_id_generator": new_concurrency_stamp,
    }

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "organization_id",
            "name",
            name="uq_organization_roles_scope_name",
        ),
        Index("ix_organization_roles_organization", "organization_id"),
    )


class OrganizationRolePermission(UUIDPrimaryKeyMixin, Base):
    """Permission link for an organization role, scoped by (tenant, organization).

    A null ``organization_id`` applies to every organization the role is used in.
    """

    __tablename__ = "organization_role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("organization_roles.id", ondelete="CASCADE"), nullable=False
    )
    permission_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    organization_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "role_id",
            "permission_id",
            "tenant_id",
            "organization_id",
            name="uq_organization_role_permissions_scope",
        ),
        Index("ix_organization_role_permissions_role_scope", "role_id", "organization_id"),
    )


class OrganizationRoleAssignment(Base):
    """Assignment of an organization role to a member."""

    __tablename__ = "organization_role_assignments"

    organization_id: Mapped[UUID] = mapped_column(UUIDType(), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(UUIDType(), primary_key=True)
    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("organization_roles.id", ondelete="NO ACTION"), primary_key=True
    )
    tenant_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    membership: Mapped[OrganizationMembership] = relationship(
        "OrganizationMembership",
        back_populates="role_assignments",
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["organization_id", "user_id"],
            [
                "organization_memberships.organization_id",
                "organization_memberships.user_id",
            ],
            ondelete="CASCADE",
            name="fk_organization_role_assignments_membership",
        ),
        Index("ix_organization_role_assignments_role", "role_id"),
    )


class OrganizationInvitation(Base):
    """Pending invitation for an email address to join an organization."""

    __tablename__ = "organization_invitations"

    code: Mapped[UUID] = mapped_column(UUIDType(), primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    organization_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    organization_name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(256), nullable=False)
    role_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("ix_organization_invitations_org_email", "organization_id", "email"),
    )

    @property
    def role_id_values(self) -> list[UUID]:
        return [UUID(str(value)) for value in self.role_ids or []]


__all__ = [
    "Organization",
    "OrganizationInvitation",
    "OrganizationMembership",
    "OrganizationRole",
    "OrganizationRoleAssignment",
    "OrganizationRolePermission",
    "OrganizationStatus",
]
