"""Errors raised by the organization services."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from identity_access.common.errors import ConflictError, InvalidRequestError, UnknownEntityError


class OrganizationValidationError(InvalidRequestError):
    """Raised when an organization payload is invalid."""


class OrganizationNotFoundError(UnknownEntityError):
    def __init__(self, organization_id: UUID | str) -> None:
        super().__init__(
            "Organization not found",
            entity="organization",
            identifiers=[organization_id],
        )


class OrganizationConflictError(ConflictError):
    """Raised when a slug or display name is already taken in the tenant."""


class OrganizationRoleNotFoundError(UnknownEntityError):
    def __init__(self, role_ids: Iterable[UUID]) -> None:
        ids = list(role_ids)
        super().__init__(
            f"Organization roles not found: {', '.join(str(value) for value in ids)}",
            entity="organization_role",
            identifiers=ids,
        )


class OrganizationRoleConflictError(ConflictError):
    """Raised when an organization role name is already used in its scope."""


class OrganizationRoleImmutableError(ConflictError):
    """Raised when attempting a forbidden change to a system organization role."""


class OrganizationRoleInUseError(ConflictError):
    """Raised when deleting an organization role that members still hold."""


class MembershipNotFoundError(UnknownEntityError):
    def __init__(self, organization_id: UUID, user_id: UUID) -> None:
        super().__init__(
            "Membership not found",
            entity="membership",
            identifiers=[organization_id, user_id],
        )


class MembershipConflictError(ConflictError):
    """Raised when the user already belongs to the organization."""


class InvitationAlreadyExistsError(ConflictError):
    """Raised when an unexpired invitation exists for the same email."""


__all__ = [
    "InvitationAlreadyExistsError",
    "MembershipConflictError",
    "MembershipNotFoundError",
    "OrganizationConflictError",
    "OrganizationNotFoundError",
    "OrganizationRoleConflictError",
    "OrganizationRoleImmutableError",
    "OrganizationRoleInUseError",
    "OrganizationRoleNotFoundError",
    "OrganizationValidationError",
]
