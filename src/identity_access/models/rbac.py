"""Global RBAC models: permissions, roles, and user role assignments."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from identity_access.common.ids import new_concurrency_stamp
from identity_access.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from identity_access.db.types import UUIDType


class Permission(UUIDPrimaryKeyMixin, Base):
    """Canonical permission catalog entry."""

    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    role_permissions: Mapped[list[RolePermission]] = relationship(
        "RolePermission",
        back_populates="permission",
        passive_deletes=True,
    )


class Role(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Role definition that aggregates permissions.

    ``concurrency_stamp`` is regenerated on every flush that updates the row;
    stale updates surface as ``StaleDataError``.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_role: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    concurrency_stamp: Mapped[str] = mapped_column(String(32), nullable=False)

    permissions: Mapped[list[RolePermission]] = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    assignments: Mapped[list[UserRole]] = relationship(
        "UserRole",
        back_populates="role",
        passive_deletes=True,
    )

    __mapper_args__ = {
        "version_id_col": concurrency_stamp,
        "version_id_generator": new_concurrency_stamp,
    }


class RolePermission(Base):
    """Bridge table linking roles and permissions."""

    __tablename__ = "role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )

    role: Mapped[Role] = relationship("Role", back_populates="permissions")
    permission: Mapped[Permission] = relationship(
        "Permission",
        back_populates="role_permissions",
        lazy="joined",
    )

    __table_args__ = (Index("ix_role_permissions_permission", "permission_id"),)


class UserRole(Base):
    """Global assignment of a role to a user."""

    __tablename__ = "user_roles"

    user_id: Mapped[UUID] = mapped_column(UUIDType(), primary_key=True)
    role_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )

    role: Mapped[Role] = relationship("Role", back_populates="assignments")

    __table_args__ = (Index("ix_user_roles_role", "role_id"),)


__all__ = ["Permission", "Role", "RolePermission", "UserRole"]
