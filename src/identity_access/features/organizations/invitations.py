"""Email invitations to join an organization."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.errors import InvalidRequestError
from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.lifecycle import (
    OrganizationLifecycleContext,
    OrganizationLifecycleEvent,
    OrganizationLifecycleHookDispatcher,
)
from identity_access.models import Organization, OrganizationInvitation
from identity_access.settings import Settings, get_settings

from .errors import InvitationAlreadyExistsError, OrganizationNotFoundError
from .members import OrganizationMembershipService, normalize_role_ids
from .roles import OrganizationRoleService
from .schemas import InvitationAcceptanceResult, InvitationAcceptor

logger = logging.getLogger(__name__)


def _normalize_email(value: str | None) -> str:
    email = (value or "").strip().lower()
    if not email:
        raise InvalidRequestError("Email is required.")
    return email


def _redact_email(email: str) -> str:
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


class OrganizationInvitationService:
    """Create, revoke and redeem organization invitations."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        dispatcher: OrganizationLifecycleHookDispatcher,
        settings: Settings | None = None,
        memberships: OrganizationMembershipService | None = None,
    ) -> None:
        self._session = session
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._roles = OrganizationRoleService(session=session, settings=self._settings)
        self._memberships = memberships or OrganizationMembershipService(
            session=session,
            dispatcher=dispatcher,
            settings=self._settings,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(
        self,
        *,
        organization_id: UUID,
        email: str,
        role_ids: Iterable[UUID] = (),
        created_by: UUID | None = None,
        expires_in_hours: int | None = None,
    ) -> OrganizationInvitation:
        if is_nil(organization_id):
            raise InvalidRequestError("Organization identifier is required.")
        normalized_email = _normalize_email(email)

        organization = await self._session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)

        requested = normalize_role_ids(role_ids)
        await self._roles.resolve_assignable_roles(organization, requested)

        if await self._has_active_invitation(organization.id, normalized_email):
            raise InvitationAlreadyExistsError(
                f"An active invitation already exists for '{normalized_email}'."
            )

        now = utc_now()
        invitation = OrganizationInvitation(
            code=uuid.uuid4(),
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            email=normalized_email,
            role_ids=[str(role_id) for role_id in requested],
            created_by=created_by,
            created_at=now,
            expires_at=now + self._resolve_lifetime(expires_in_hours),
        )
        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.INVITATION_CREATED,
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            actor_user_id=created_by,
            organization=organization,
            invitation=invitation,
        )
        await self._dispatcher.ensure_can(context)

        self._session.add(invitation)
        await self._session.commit()

        logger.info(
            "organizations.invitations.create.success",
            extra=log_context(
                organization_id=organization.id,
                code=str(invitation.code),
                email=_redact_email(normalized_email),
            ),
        )
        await self._dispatcher.notify(context)
        return invitation

    async def revoke(self, organization_id: UUID, code: UUID) -> bool:
        """Delete an invitation; ``False`` when it is missing or belongs elsewhere."""

        invitation = await self.find(code)
        if invitation is None or invitation.organization_id != organization_id:
            return False

        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.INVITATION_REVOKED,
            organization_id=organization_id,
            invitation=invitation,
        )
        await self._dispatcher.ensure_can(context)

        await self._remove(code)
        await self._session.commit()

        logger.info(
            "organizations.invitations.revoke.success",
            extra=log_context(organization_id=organization_id, code=str(code)),
        )
        await self._dispatcher.notify(context)
        return True

    async def accept(
        self, code: UUID, user: InvitationAcceptor
    ) -> InvitationAcceptanceResult | None:
        """Redeem an invitation for ``user``.

        Returns ``None`` when the invitation is unknown, expired, or its
        organization no longer exists.
        """

        invitation = await self.find(code)
        if invitation is None:
            return None
        if invitation.email.lower() != (user.email or "").strip().lower():
            raise InvalidRequestError("Invitation email does not match the signed-in user.")

        organization = await self._session.get(Organization, invitation.organization_id)
        if organization is None:
            await self._remove(code)
            await self._session.commit()
            return None

        was_existing_user = user.created_at <= invitation.created_at
        membership = await self._memberships.get_membership(organization.id, user.user_id)
        was_existing_member = membership is not None
        role_ids = invitation.role_id_values

        context = OrganizationLifecycleContext(
            event=OrganizationLifecycleEvent.INVITATION_ACCEPTED,
            organization_id=organization.id,
            organization_slug=organization.slug,
            organization_name=organization.display_name,
            target_user_id=user.user_id,
            organization=organization,
            invitation=invitation,
        )
        await self._dispatcher.ensure_can(context)

        if membership is None:
            membership = await self._memberships.add_member(
                organization_id=organization.id,
                user_id=user.user_id,
                tenant_id=organization.tenant_id,
                role_ids=role_ids,
            )
        else:
            merged = normalize_role_ids(
                [assignment.role_id for assignment in membership.role_assignments] + role_ids
            )
            if merged:
                membership = await self._memberships.update_membership(
                    organization_id=organization.id,
                    user_id=user.user_id,
                    role_ids=merged,
                )

        await self._remove(code)
        await self._session.commit()

        logger.info(
            "organizations.invitations.accept.success",
            extra=log_context(
                organization_id=organization.id,
                user_id=user.user_id,
                code=str(code),
            ),
        )
        await self._dispatcher.notify(context)
        return InvitationAcceptanceResult(
            organization_id=organization.id,
            user_id=user.user_id,
            membership=membership,
            was_existing_member=was_existing_member,
            was_existing_user=was_existing_user,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find(self, code: UUID) -> OrganizationInvitation | None:
        """Return an unexpired invitation; expired ones are purged."""

        invitation = await self._session.get(OrganizationInvitation, code)
        if invitation is None:
            return None
        if invitation.expires_at <= utc_now():
            await self._remove(code)
            await self._session.flush()
            return None
        return invitation

    async def list_invitations(self, organization_id: UUID) -> list[OrganizationInvitation]:
        result = await self._session.execute(
            select(OrganizationInvitation)
            .where(
                OrganizationInvitation.organization_id == organization_id,
                OrganizationInvitation.expires_at > utc_now(),
            )
            .order_by(OrganizationInvitation.created_at.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_lifetime(self, expires_in_hours: int | None) -> timedelta:
        if expires_in_hours is None:
            return self._settings.invitation_default_lifetime
        lifetime = timedelta(hours=max(0, expires_in_hours))
        return min(
            max(lifetime, self._settings.invitation_min_lifetime),
            self._settings.invitation_max_lifetime,
        )

    async def _has_active_invitation(self, organization_id: UUID, email: str) -> bool:
        existing = await self._session.scalar(
            select(OrganizationInvitation.code)
            .where(
                OrganizationInvitation.organization_id == organization_id,
                OrganizationInvitation.email == email,
                OrganizationInvitation.expires_at > utc_now(),
            )
            .limit(1)
        )
        return existing is not None

    async def _remove(self, code: UUID) -> None:
        invitation = await self._session.get(OrganizationInvitation, code)
        if invitation is not None:
            await self._session.delete(invitation)


__all__ = ["OrganizationInvitationService"]
