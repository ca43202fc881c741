"""Organizations: lifecycle, memberships, invitations and scoped roles."""

from .context import (
    OrganizationAdditionalPermissionSource,
    OrganizationContext,
    OrganizationContextAccessor,
)
from .invitations import OrganizationInvitationService
from .members import OrganizationMembershipService
from .permissions import OrganizationPermissionResolver
from .roles import OrganizationRoleService
from .seeder import OrganizationRoleSeeder
from .service import OrganizationService

__all__ = [
    "OrganizationAdditionalPermissionSource",
    "OrganizationContext",
    "OrganizationContextAccessor",
    "OrganizationInvitationService",
    "OrganizationMembershipService",
    "OrganizationPermissionResolver",
    "OrganizationRoleSeeder",
    "OrganizationRoleService",
    "OrganizationService",
]
