"""Global roles: administration, seeding and user assignments."""

from .assignments import RoleAssignmentService, UnknownRoleError
from .seeder import RoleSeeder
from .service import RoleService

__all__ = ["RoleAssignmentService", "RoleSeeder", "RoleService", "UnknownRoleError"]
