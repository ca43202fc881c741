from __future__ import annotations

from uuid import uuid4

import pytest
import pytest_asyncio

from identity_access.common.errors import ConcurrencyConflictError
from identity_access.features.roles import RoleAssignmentService, RoleSeeder, RoleService
from identity_access.features.roles.service import (
    PermissionNotFoundError,
    RoleConflictError,
    RoleImmutableError,
    RoleInUseError,
    RoleNotFoundError,
    RoleValidationError,
    role_permission_names,
)

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture()
async def service(session, settings) -> RoleService:
    await RoleSeeder(session=session, settings=settings).seed()
    return RoleService(session=session, settings=settings)


async def test_create_role_with_permissions(service: RoleService) -> None:
    role = await service.create_role(
        name="  Auditor ",
        description="Reads everything",
        permissions=["USERS.READ", "roles.read"],
    )

    assert role.name == "Auditor"
    assert role_permission_names(role) == ["roles.read", "users.read"]
    assert role.concurrency_stamp


async def test_create_role_validation(service: RoleService) -> None:
    with pytest.raises(RoleValidationError):
        await service.create_role(name="   ")
    with pytest.raises(RoleValidationError):
        await service.create_role(name="x" * 129)
    with pytest.raises(RoleConflictError):
        await service.create_role(name="reader")
    with pytest.raises(PermissionNotFoundError):
        await service.create_role(name="Auditor", permissions=["ghost.read"])


async def test_update_role_rotates_stamp_and_replaces_permissions(service: RoleService) -> None:
    role = await service.create_role(name="Auditor", permissions=["users.read"])
    stamp = role.concurrency_stamp

    updated = await service.update_role(
        role_id=role.id,
        concurrency_stamp=stamp,
        name="Auditors",
        description=None,
        is_system_role=False,
        permissions=["roles.read"],
    )

    assert updated.name == "Auditors"
    assert updated.concurrency_stamp != stamp
    assert role_permission_names(updated) == ["roles.read"]


async def test_update_role_rejects_stale_stamp(service: RoleService) -> None:
    role = await service.create_role(name="Auditor")

    with pytest.raises(ConcurrencyConflictError, match="Role was modified by another process."):
        await service.update_role(
            role_id=role.id,
            concurrency_stamp="stale",
            name="Auditor",
            description=None,
            is_system_role=False,
        )


async def test_system_roles_cannot_be_renamed_downgraded_or_deleted(service: RoleService) -> None:
    admin = next(role for role in await service.list_roles() if role.name == "Administrator")
    stamp = admin.concurrency_stamp

    with pytest.raises(RoleImmutableError, match="System roles cannot be renamed."):
        await service.update_role(
            role_id=admin.id,
            concurrency_stamp=stamp,
            name="Admins",
            description=None,
            is_system_role=True,
        )
    with pytest.raises(RoleImmutableError, match="System roles cannot be downgraded."):
        await service.update_role(
            role_id=admin.id,
            concurrency_stamp=stamp,
            name="Administrator",
            description=None,
            is_system_role=False,
        )
    with pytest.raises(RoleImmutableError, match="System roles cannot be deleted."):
        await service.delete_role(role_id=admin.id)


async def test_delete_role_in_use_is_a_conflict(service: RoleService, session, settings) -> None:
    role = await service.create_role(name="Auditor", permissions=["users.read"])
    await RoleAssignmentService(session=session, settings=settings).assign_roles(
        uuid4(), ["Auditor"]
    )

    with pytest.raises(RoleInUseError):
        await service.delete_role(role_id=role.id)


async def test_delete_role_removes_it(service: RoleService) -> None:
    role = await service.create_role(name="Auditor", permissions=["users.read"])

    await service.delete_role(role_id=role.id, concurrency_stamp=role.concurrency_stamp)

    assert await service.get_role(role.id) is None
    with pytest.raises(RoleNotFoundError):
        await service.delete_role(role_id=role.id)


async def test_list_permissions_is_sorted(service: RoleService) -> None:
    names = [permission.name for permission in await service.list_permissions()]

    assert names == sorted(names)
    assert "users.read" in names
