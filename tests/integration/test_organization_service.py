from __future__ import annotations

from uuid import uuid4

import pytest

from identity_access.common.errors import LifecycleHookRejectedError
from identity_access.features.organizations import OrganizationService
from identity_access.features.organizations.errors import (
    OrganizationConflictError,
    OrganizationNotFoundError,
    OrganizationValidationError,
)
from identity_access.features.organizations.schemas import OrganizationCreate, OrganizationUpdate
from identity_access.lifecycle import (
    LifecycleHookResult,
    OrganizationLifecycleHookDispatcher,
    OrganizationLifecycleListener,
)
from identity_access.models import OrganizationStatus

pytestmark = pytest.mark.asyncio


class RecordingListener(OrganizationLifecycleListener):
    def __init__(self) -> None:
        self.events: list[str] = []

    def __getattribute__(self, name: str):
        if name.startswith(("before_", "after_")):
            events = object.__getattribute__(self, "events")

            async def record(context):
                events.append(name)
                return LifecycleHookResult.ok() if name.startswith("before_") else None

            return record
        return object.__getattribute__(self, name)


class RejectCreate(OrganizationLifecycleListener):
    async def before_organization_created(self, context):
        return LifecycleHookResult.reject("quota exceeded")


def _service(session, settings, *listeners) -> OrganizationService:
    return OrganizationService(
        session=session,
        dispatcher=OrganizationLifecycleHookDispatcher(listeners),
        settings=settings,
    )


async def test_create_normalizes_and_runs_hooks(session, settings) -> None:
    listener = RecordingListener()
    service = _service(session, settings, listener)

    organization = await service.create(
        OrganizationCreate(slug=" Acme-Co ", display_name=" Acme ", metadata={"plan": "pro"})
    )

    assert organization.slug == "acme-co"
    assert organization.display_name == "Acme"
    assert organization.status == OrganizationStatus.ACTIVE
    assert listener.events == ["before_organization_created", "after_organization_created"]
    assert await service.get_by_slug(None, "ACME-CO") is organization


async def test_rejected_create_persists_nothing(session, settings) -> None:
    service = _service(session, settings, RejectCreate())

    with pytest.raises(LifecycleHookRejectedError, match="quota exceeded"):
        await service.create(OrganizationCreate(slug="acme", display_name="Acme"))

    assert await service.list_organizations(None) == []


async def test_create_validation_and_uniqueness(session, settings) -> None:
    service = _service(session, settings)
    tenant_id = uuid4()
    await service.create(OrganizationCreate(slug="acme", display_name="Acme"))

    with pytest.raises(OrganizationValidationError):
        await service.create(OrganizationCreate(slug="-bad", display_name="Bad"))
    with pytest.raises(OrganizationValidationError):
        await service.create(
            OrganizationCreate(slug="big", display_name="Big", metadata={"k" * 65: "v"})
        )
    with pytest.raises(OrganizationConflictError):
        await service.create(OrganizationCreate(slug="acme", display_name="Other"))
    with pytest.raises(OrganizationConflictError):
        await service.create(OrganizationCreate(slug="other", display_name="Acme"))

    other_tenant = await service.create(
        OrganizationCreate(tenant_id=tenant_id, slug="acme", display_name="Acme")
    )
    assert [org.id for org in await service.list_organizations(tenant_id)] == [other_tenant.id]


async def test_update_without_changes_skips_hooks(session, settings) -> None:
    listener = RecordingListener()
    service = _service(session, settings, listener)
    organization = await service.create(OrganizationCreate(slug="acme", display_name="Acme"))
    listener.events.clear()

    await service.update(organization.id, OrganizationUpdate(display_name="Acme"))

    assert listener.events == []


async def test_archive_through_update_runs_both_hooks(session, settings) -> None:
    listener = RecordingListener()
    service = _service(session, settings, listener)
    organization = await service.create(OrganizationCreate(slug="acme", display_name="Acme"))
    listener.events.clear()

    await service.update(
        organization.id,
        OrganizationUpdate(display_name="Acme Inc", status=OrganizationStatus.ARCHIVED),
    )

    assert listener.events == [
        "before_organization_updated",
        "before_organization_archived",
        "after_organization_updated",
        "after_organization_archived",
    ]
    assert organization.display_name == "Acme Inc"
    assert organization.archived_at is not None

    listener.events.clear()
    await service.update(organization.id, OrganizationUpdate(status=OrganizationStatus.ACTIVE))
    assert listener.events[-1] == "after_organization_restored"
    assert organization.archived_at is None


async def test_archive_is_idempotent(session, settings) -> None:
    listener = RecordingListener()
    service = _service(session, settings, listener)
    organization = await service.create(OrganizationCreate(slug="acme", display_name="Acme"))
    listener.events.clear()

    await service.archive(organization.id)
    await service.archive(organization.id)

    assert listener.events == ["before_organization_archived", "after_organization_archived"]
    assert await service.list_organizations(None, status=OrganizationStatus.ARCHIVED) == [
        organization
    ]
    with pytest.raises(OrganizationNotFoundError):
        await service.archive(uuid4())
