from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from identity_access.common.errors import InvalidRequestError
from identity_access.db.base import utc_now
from identity_access.features.organizations import (
    OrganizationInvitationService,
    OrganizationMembershipService,
    OrganizationRoleService,
)
from identity_access.features.organizations.errors import InvitationAlreadyExistsError
from identity_access.features.organizations.schemas import (
    InvitationAcceptor,
    OrganizationRoleCreate,
)
from identity_access.lifecycle import (
    OrganizationLifecycleHookDispatcher,
    OrganizationLifecycleListener,
)

from .helpers import create_organization

pytestmark = pytest.mark.asyncio


class InvitationListener(OrganizationLifecycleListener):
    def __init__(self) -> None:
        self.events: list[str] = []

    async def after_invitation_created(self, context):
        self.events.append(f"created:{context.invitation.email}")

    async def after_invitation_revoked(self, context):
        self.events.append("revoked")

    async def after_invitation_accepted(self, context):
        self.events.append(f"accepted:{context.target_user_id}")

    async def after_member_added(self, context):
        self.events.append("member_added")


async def _setup(session, settings):
    listener = InvitationListener()
    dispatcher = OrganizationLifecycleHookDispatcher([listener])
    organization = await create_organization(session, dispatcher, settings)
    role = await OrganizationRoleService(session=session, settings=settings).create(
        OrganizationRoleCreate(name="Member")
    )
    service = OrganizationInvitationService(
        session=session, dispatcher=dispatcher, settings=settings
    )
    return service, organization, role, listener


def _acceptor(email: str = "new@example.com", *, age: timedelta = timedelta(0)):
    return InvitationAcceptor(user_id=uuid4(), email=email, created_at=utc_now() + age)


async def test_create_normalizes_email_and_clamps_lifetime(session, settings) -> None:
    service, organization, role, listener = await _setup(session, settings)

    invitation = await service.create(
        organization_id=organization.id,
        email="  New@Example.COM ",
        role_ids=[role.id],
        expires_in_hours=24 * 365,
    )

    assert invitation.email == "new@example.com"
    assert invitation.organization_slug == organization.slug
    assert invitation.role_id_values == [role.id]
    lifetime = invitation.expires_at - invitation.created_at
    assert lifetime == settings.invitation_max_lifetime
    assert listener.events == ["created:new@example.com"]

    short = await service.create(
        organization_id=organization.id, email="short@example.com", expires_in_hours=0
    )
    assert short.expires_at - short.created_at == settings.invitation_min_lifetime


async def test_duplicate_active_invitation_is_a_conflict(session, settings) -> None:
    service, organization, _, _ = await _setup(session, settings)
    await service.create(organization_id=organization.id, email="dup@example.com")

    with pytest.raises(InvitationAlreadyExistsError):
        await service.create(organization_id=organization.id, email="DUP@example.com")
    with pytest.raises(InvalidRequestError):
        await service.create(organization_id=organization.id, email="  ")


async def test_expired_invitations_are_purged_on_find(session, settings) -> None:
    service, organization, _, _ = await _setup(session, settings)
    invitation = await service.create(organization_id=organization.id, email="old@example.com")
    invitation.expires_at = utc_now() - timedelta(minutes=1)
    await session.flush()

    assert await service.list_invitations(organization.id) == []
    assert await service.find(invitation.code) is None
    assert await service.accept(invitation.code, _acceptor("old@example.com")) is None


async def test_revoke_requires_matching_organization(session, dispatcher, settings) -> None:
    service, organization, _, listener = await _setup(session, settings)
    other = await create_organization(
        session, dispatcher, settings, slug="other", display_name="Other"
    )
    invitation = await service.create(organization_id=organization.id, email="a@example.com")

    assert await service.revoke(other.id, invitation.code) is False
    assert await service.revoke(organization.id, invitation.code) is True
    assert await service.revoke(organization.id, invitation.code) is False
    assert listener.events[-1] == "revoked"


async def test_accept_adds_new_member(session, settings) -> None:
    service, organization, role, listener = await _setup(session, settings)
    invitation = await service.create(
        organization_id=organization.id, email="new@example.com", role_ids=[role.id]
    )
    user = _acceptor(age=timedelta(minutes=5))

    result = await service.accept(invitation.code, user)

    assert result is not None
    assert result.was_existing_member is False
    assert result.was_existing_user is False
    assert [assignment.role_id for assignment in result.membership.role_assignments] == [role.id]
    assert await service.find(invitation.code) is None
    assert listener.events[-2:] == ["member_added", f"accepted:{user.user_id}"]


async def test_accept_merges_roles_for_existing_member(session, settings) -> None:
    service, organization, role, _ = await _setup(session, settings)
    extra = await OrganizationRoleService(session=session, settings=settings).create(
        OrganizationRoleCreate(name="Editor", organization_id=organization.id)
    )
    user = _acceptor("member@example.com", age=-timedelta(days=30))
    memberships = OrganizationMembershipService(
        session=session,
        dispatcher=OrganizationLifecycleHookDispatcher(),
        settings=settings,
    )
    await memberships.add_member(
        organization_id=organization.id, user_id=user.user_id, role_ids=[role.id]
    )
    invitation = await service.create(
        organization_id=organization.id, email="member@example.com", role_ids=[extra.id]
    )

    result = await service.accept(invitation.code, user)

    assert result.was_existing_member is True
    assert result.was_existing_user is True
    assert {assignment.role_id for assignment in result.membership.role_assignments} == {
        role.id,
        extra.id,
    }


async def test_accept_rejects_other_email(session, settings) -> None:
    service, organization, _, _ = await _setup(session, settings)
    invitation = await service.create(organization_id=organization.id, email="a@example.com")

    with pytest.raises(InvalidRequestError):
        await service.accept(invitation.code, _acceptor("b@example.com"))
    assert await service.find(invitation.code) is not None
