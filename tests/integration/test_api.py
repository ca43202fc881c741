from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import uuid4

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from identity_access.api import create_app
from identity_access.db.database import db
from identity_access.features.organizations import (
    OrganizationMembershipService,
    OrganizationRoleService,
)
from identity_access.features.roles import RoleAssignmentService
from identity_access.lifecycle import OrganizationLifecycleHookDispatcher
from identity_access.models import OrganizationRole
from identity_access.settings import get_settings

from .helpers import create_organization

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture()
async def async_client(settings) -> AsyncIterator[AsyncClient]:
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest_asyncio.fixture()
async def member(async_client, settings):
    dispatcher = OrganizationLifecycleHookDispatcher()
    async with db.sessionmaker() as session:
        organization = await create_organization(session, dispatcher, settings)
        owner = await session.scalar(
            select(OrganizationRole).where(OrganizationRole.name == "OrgOwner")
        )
        user_id = uuid4()
        await RoleAssignmentService(session=session, settings=settings).assign_roles(
            user_id, ["Reader"]
        )
        await OrganizationMembershipService(
            session=session, dispatcher=dispatcher, settings=settings
        ).add_member(organization_id=organization.id, user_id=user_id, role_ids=[owner.id])
        await session.commit()
    return organization, owner, user_id


async def test_user_permissions(async_client: AsyncClient, member) -> None:
    _, _, user_id = member

    response = await async_client.get(f"/api/users/{user_id}/permissions")

    assert response.status_code == 200
    assert response.json() == {"user_id": str(user_id), "permissions": ["users.read"]}


async def test_member_permissions(async_client: AsyncClient, member) -> None:
    organization, _, user_id = member

    response = await async_client.get(
        f"/api/organizations/{organization.id}/users/{user_id}/permissions"
    )

    assert response.status_code == 200
    assert response.json()["permissions"] == [
        "organizations.manage",
        "organizations.read",
        "users.read",
    ]


async def test_role_permissions(async_client: AsyncClient, member, settings) -> None:
    organization, owner, _ = member
    async with db.sessionmaker() as session:
        await OrganizationRoleService(session=session, settings=settings).update_permissions(
            owner.id, organization.id, ["users.manage"]
        )
        await session.commit()

    response = await async_client.get(
        f"/api/organizations/{organization.id}/roles/{owner.id}/permissions"
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["explicit"] == ["users.manage"]
    assert payload["effective"] == ["organizations.manage", "organizations.read", "users.manage"]


async def test_unknown_role_is_problem_details(async_client: AsyncClient, member) -> None:
    organization, _, _ = member

    response = await async_client.get(
        f"/api/organizations/{organization.id}/roles/{uuid4()}/permissions"
    )

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["type"] == "not_found"
    assert body["extensions"]["entity"] == "organization_role"


async def test_user_permissions_include_the_scoped_organization(
    async_client: AsyncClient, member
) -> None:
    organization, _, user_id = member

    response = await async_client.get(
        f"/api/users/{user_id}/permissions",
        headers={"X-Organization-Id": str(organization.id)},
    )

    assert response.status_code == 200
    assert response.json()["permissions"] == [
        "organizations.manage",
        "organizations.read",
        "users.read",
    ]


async def test_scoped_organization_ignores_non_members(async_client: AsyncClient, member) -> None:
    organization, _, _ = member
    outsider = uuid4()

    response = await async_client.get(
        f"/api/users/{outsider}/permissions",
        headers={"X-Organization-Id": str(organization.id)},
    )

    assert response.status_code == 200
    assert response.json()["permissions"] == []


async def test_unknown_organization_header_is_not_found(
    async_client: AsyncClient, member
) -> None:
    _, _, user_id = member

    response = await async_client.get(
        f"/api/users/{user_id}/permissions",
        headers={"X-Organization-Id": str(uuid4())},
    )

    assert response.status_code == 404
    body = response.json()
    assert body["extensions"]["entity"] == "organization"


async def test_malformed_organization_header_is_bad_request(
    async_client: AsyncClient, member
) -> None:
    _, _, user_id = member

    response = await async_client.get(
        f"/api/users/{user_id}/permissions",
        headers={"X-Organization-Id": "not-a-guid"},
    )

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["type"] == "bad_request"


async def test_request_id_is_echoed(async_client: AsyncClient, member) -> None:
    _, _, user_id = member

    response = await async_client.get(
        f"/api/users/{user_id}/permissions",
        headers={"X-Request-ID": "req-123"},
    )
    generated = await async_client.get(f"/api/users/{user_id}/permissions")

    assert response.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]
