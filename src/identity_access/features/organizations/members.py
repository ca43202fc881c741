"""Organization memberships and their role assignments."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from identity_access.common.errors import InvalidRequestError
from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.lifecycle import (
    OrganizationLifecycleContext,
    OrganizationLifecycleEvent,
    OrganizationLifecycleHookDispatcher,
)
from identity_access.models import (
    Organization,
    OrganizationMembership,
    OrganizationRoleAssignment,
    OrganizationStatus,
)
from identity_access.settings import Settings, get_settings

from .errors import (
    MembershipConflictError,
    MembershipNotFoundError,
    OrganizationNotFoundError,
    OrganizationValidationError,
)
from .roles import OrganizationRoleService

logger = logging.getLogger(__name__)


def normalize_role_ids(role_ids: Iterable[UUID] | None) -> list[UUID]:
    """Drop nil ids and duplicates, keeping request order."""

    if not role_ids:
        return []
    return [role_id for role_id in dict.fromkeys(role_ids) if not is_nil(role_id)]


def _membership_query():
    return select(OrganizationMembership).options(
        selectinload(OrganizationMembership.role_assignments),
        selectinload(OrganizationMembership.organization),
    )


class OrganizationMembershipService:
    """Add, update and remove organization members, gated by lifecycle hooks."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        dispatcher: OrganizationLifecycleHookDispatcher,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._roles = OrganizationRoleService(session=session, settings=self._settings)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def add_member(
        self,
        *,
        organization_id: UUID,
        user_id: UUID,
        tenant_id: UUID | None = None,
        role_ids: Iterable[UUID] = (),
        actor_user_id: UUID | None = None,
    ) -> OrganizationMembership:
        if is_nil(organization_id):
            raise InvalidRequestError("Organization identifier is required.")
        if is_nil(user_id):
            raise InvalidRequestError("User identifier is required.")

        organization = await self._session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)
        if (
            organization.tenant_id is not None
            and tenant_id is not None
            and organization.tenant_id != tenant_id
        ):
            raise OrganizationValidationError("Organization and membership tenants do not match.")
        if await self._find(organization_id, user_id) is not None:
            raise MembershipConflictError("The user is already a member of this organization.")

        requested = normalize_role_ids(role_ids)
        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.MEMBER_ADDED,
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            actor_user_id=actor_user_id,
            target_user_id=user_id,
            organization=organization,
            items={"role_ids": tuple(requested)},
        )
        await self._dispatcher.ensure_can(context)

        roles = await self._roles.resolve_assignable_roles(organization, requested)
        membership = OrganizationMembership(
            organization_id=organization.id,
            user_id=user_id,
            tenant_id=organization.tenant_id,
            organization=organization,
        )
        membership.role_assignments = [
            OrganizationRoleAssignment(
                organization_id=organization.id,
                user_id=user_id,
                role_id=role.id,
                tenant_id=organization.tenant_id,
            )
            for role in roles
        ]
        self._session.add(membership)
        await self._session.commit()

        logger.info(
            "organizations.members.add.success",
            extra=log_context(
                tenant_id=organization.tenant_id,
                organization_id=organization.id,
                user_id=user_id,
                roles=len(roles),
            ),
        )
        await self._dispatcher.notify(context)
        return membership

    async def update_membership(
        self,
        *,
        organization_id: UUID,
        user_id: UUID,
        role_ids: Iterable[UUID] | None,
        actor_user_id: UUID | None = None,
    ) -> OrganizationMembership:
        """Replace the member's roles; hooks run only when the role set changes."""

        membership = await self._find(organization_id, user_id)
        if membership is None:
            raise MembershipNotFoundError(organization_id, user_id)
        if role_ids is None:
            return membership

        organization = membership.organization
        requested = normalize_role_ids(role_ids)
        existing = {assignment.role_id: assignment for assignment in membership.role_assignments}
        if set(requested) == set(existing):
            return membership

        roles = await self._roles.resolve_assignable_roles(organization, requested)
        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.MEMBERSHIP_UPDATED,
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            actor_user_id=actor_user_id,
            target_user_id=user_id,
            organization=organization,
            items={"role_ids": tuple(requested)},
        )
        await self._dispatcher.ensure_can(context)

        desired = {role.id for role in roles}
        for role_id, assignment in existing.items():
            if role_id not in desired:
                membership.role_assignments.remove(assignment)
        for role in roles:
            if role.id not in existing:
                membership.role_assignments.append(
                    OrganizationRoleAssignment(
                        organization_id=membership.organization_id,
                        user_id=membership.user_id,
                        role_id=role.id,
                        tenant_id=organization.tenant_id,
                    )
                )
        membership.updated_at = utc_now()
        await self._session.commit()

        logger.info(
            "organizations.members.update.success",
            extra=log_context(
                organization_id=organization.id,
                user_id=user_id,
                roles=len(desired),
            ),
        )
        await self._dispatcher.notify(context)
        return membership

    async def remove_member(
        self,
        *,
        organization_id: UUID,
        user_id: UUID,
        actor_user_id: UUID | None = None,
    ) -> None:
        """Revoke a membership and its role assignments; missing members are ignored."""

        membership = await self._find(organization_id, user_id)
        if membership is None:
            return

        organization = membership.organization
        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.MEMBERSHIP_REVOKED,
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            actor_user_id=actor_user_id,
            target_user_id=user_id,
            organization=organization,
        )
        await self._dispatcher.ensure_can(context)

        await self._session.delete(membership)
        await self._session.commit()

        logger.info(
            "organizations.members.remove.success",
            extra=log_context(organization_id=organization_id, user_id=user_id),
        )
        await self._dispatcher.notify(context)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_membership(
        self, organization_id: UUID, user_id: UUID
    ) -> OrganizationMembership | None:
        if is_nil(organization_id) or is_nil(user_id):
            return None
        return await self._find(organization_id, user_id)

    async def list_memberships_for_user(
        self,
        user_id: UUID,
        *,
        tenant_id: UUID | None = None,
        include_archived: bool = True,
    ) -> list[OrganizationMembership]:
        if is_nil(user_id):
            return []
        stmt = (
            _membership_query()
            .join(Organization, Organization.id == OrganizationMembership.organization_id)
            .where(OrganizationMembership.user_id == user_id)
            .order_by(Organization.display_name, OrganizationMembership.organization_id)
        )
        if tenant_id is not None:
            stmt = stmt.where(OrganizationMembership.tenant_id == tenant_id)
        if not include_archived:
            stmt = stmt.where(Organization.status != OrganizationStatus.ARCHIVED)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_members(
        self,
        organization_id: UUID,
        *,
        role_id: UUID | None = None,
    ) -> list[OrganizationMembership]:
        stmt = (
            _membership_query()
            .where(OrganizationMembership.organization_id == organization_id)
            .order_by(OrganizationMembership.created_at, OrganizationMembership.user_id)
        )
        if role_id is not None:
            stmt = stmt.where(
                OrganizationMembership.role_assignments.any(
                    OrganizationRoleAssignment.role_id == role_id
                )
            )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _find(self, organization_id: UUID, user_id: UUID) -> OrganizationMembership | None:
        result = await self._session.execute(
            _membership_query().where(
                OrganizationMembership.organization_id == organization_id,
                OrganizationMembership.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()


__all__ = ["OrganizationMembershipService", "normalize_role_ids"]
