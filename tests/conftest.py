from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from identity_access.db.database import Database, DatabaseConfig
from identity_access.lifecycle import OrganizationLifecycleHookDispatcher
from identity_access.settings import (
    OrganizationRoleDefinition,
    PermissionDefinition,
    RoleDefinition,
    Settings,
)


def pytest_collection_modifyitems(config, items) -> None:
    for item in items:
        path_str = str(Path(str(item.fspath)))
        if "/tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)
        elif "/tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        permissions=[
            PermissionDefinition(name="users.read"),
            PermissionDefinition(name="users.manage"),
            PermissionDefinition(name="roles.read"),
            PermissionDefinition(name="organizations.read"),
            PermissionDefinition(name="organizations.manage"),
            PermissionDefinition(name="organization.members.read"),
            PermissionDefinition(name="organization.members.manage"),
            PermissionDefinition(name="organization.roles.read"),
            PermissionDefinition(name="organization.roles.manage"),
        ],
        roles=[
            RoleDefinition(
                name="Administrator",
                is_system_role=True,
                permissions=["users.read", "users.manage", "roles.read"],
            ),
            RoleDefinition(name="Reader", permissions=["users.read"]),
        ],
        organization_roles=[
            OrganizationRoleDefinition(
                name="OrgOwner",
                permissions=["organizations.read", "organizations.manage"],
            ),
            OrganizationRoleDefinition(
                name="OrgMember",
                permissions=["organizations.read"],
            ),
        ],
        default_user_roles=["Reader"],
    )


@pytest_asyncio.fixture()
async def database(settings: Settings):
    database = Database()
    database.init(DatabaseConfig.from_settings(settings))
    await database.create_all()
    try:
        yield database
    finally:
        await database.dispose()


@pytest_asyncio.fixture()
async def session(database: Database):
    async with database.sessionmaker() as session:
        yield session


@pytest.fixture()
def dispatcher() -> OrganizationLifecycleHookDispatcher:
    return OrganizationLifecycleHookDispatcher()
