from __future__ import annotations

from uuid import UUID

from identity_access.features.organizations import OrganizationService
from identity_access.features.organizations.schemas import OrganizationCreate
from identity_access.models import Organization, Permission


async def create_organization(
    session,
    dispatcher,
    settings,
    *,
    slug: str = "acme",
    display_name: str = "Acme",
    tenant_id: UUID | None = None,
) -> Organization:
    service = OrganizationService(session=session, dispatcher=dispatcher, settings=settings)
    return await service.create(
        OrganizationCreate(tenant_id=tenant_id, slug=slug, display_name=display_name)
    )


async def add_permissions(session, *names: str) -> dict[str, Permission]:
    permissions = {name: Permission(name=name) for name in names}
    session.add_all(permissions.values())
    await session.flush()
    return permissions
