from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from identity_access.common.ids import NIL_UUID
from identity_access.features.roles import RoleAssignmentService, RoleSeeder, UnknownRoleError
from identity_access.models import Role, UserRole

pytestmark = pytest.mark.asyncio


async def test_assign_roles_seeds_on_unknown_and_grants_permissions(session, settings) -> None:
    service = RoleAssignmentService(session=session, settings=settings)
    user_id = uuid4()

    await service.assign_roles(user_id, ["administrator"])

    assert await service.get_user_role_names(user_id) == {"Administrator"}
    assert await service.get_effective_permissions(user_id) == {
        "users.read",
        "users.manage",
        "roles.read",
    }


async def test_assign_roles_is_idempotent(session, settings) -> None:
    await RoleSeeder(session=session, settings=settings).seed()
    service = RoleAssignmentService(session=session, settings=settings)
    user_id = uuid4()

    await service.assign_roles(user_id, ["Reader", "Administrator"])
    await service.assign_roles(user_id, ["administrator", "READER", " reader "])

    count = await session.scalar(
        select(func.count()).select_from(UserRole).where(UserRole.user_id == user_id)
    )
    assert count == 2


async def test_assign_roles_replaces_the_role_set(session, settings) -> None:
    await RoleSeeder(session=session, settings=settings).seed()
    service = RoleAssignmentService(session=session, settings=settings)
    user_id = uuid4()

    await service.assign_roles(user_id, ["Reader", "Administrator"])
    await service.assign_roles(user_id, ["Reader"])

    assert await service.get_user_role_names(user_id) == {"Reader"}
    assert await service.get_effective_permissions(user_id) == {"users.read"}

    await service.assign_roles(user_id, [])
    assert await service.get_user_role_names(user_id) == set()


async def test_unknown_role_raises_without_seeding(session, settings) -> None:
    settings = settings.model_copy(update={"seed_roles_on_unknown": False})
    service = RoleAssignmentService(session=session, settings=settings)

    with pytest.raises(UnknownRoleError) as excinfo:
        await service.assign_roles(uuid4(), ["Reader", "Ghost"])

    assert excinfo.value.missing == ("Reader", "Ghost")
    assert "Unknown roles: Reader, Ghost" in str(excinfo.value)
    assert await session.scalar(select(func.count()).select_from(Role)) == 0


async def test_unknown_role_raises_after_seeding_retry(session, settings) -> None:
    service = RoleAssignmentService(session=session, settings=settings)

    with pytest.raises(UnknownRoleError) as excinfo:
        await service.assign_roles(uuid4(), ["Reader", "Ghost"])

    assert excinfo.value.missing == ("Ghost",)
    assert await session.scalar(select(func.count()).select_from(Role)) == 2


async def test_nil_user_has_no_permissions(session, settings) -> None:
    service = RoleAssignmentService(session=session, settings=settings)

    assert await service.get_effective_permissions(NIL_UUID) == set()
    assert await service.get_user_role_names(NIL_UUID) == set()


async def test_assign_default_roles_keeps_existing_roles(session, settings) -> None:
    seeder = RoleSeeder(session=session, settings=settings)
    await seeder.seed()
    service = RoleAssignmentService(session=session, settings=settings)
    user_id = uuid4()
    await service.assign_roles(user_id, ["Administrator"])

    await seeder.assign_default_roles(user_id)

    assert await service.get_user_role_names(user_id) == {"Administrator", "Reader"}
