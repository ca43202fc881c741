"""SQLAlchemy models for the access-control core."""

from .organization import (
    Organization,
    OrganizationInvitation,
    OrganizationMembership,
    OrganizationRole,
    OrganizationRoleAssignment,
    OrganizationRolePermission,
    OrganizationStatus,
)
from .rbac import Permission, Role, RolePermission, UserRole

__all__ = [
    "Organization",
    "OrganizationInvitation",
    "OrganizationMembership",
    "OrganizationRole",
    "OrganizationRoleAssignment",
    "OrganizationRolePermission",
    "OrganizationStatus",
    "Permission",
    "Role",
    "RolePermission",
    "UserRole",
]
