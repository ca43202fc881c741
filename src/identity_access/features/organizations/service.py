"""Organization lifecycle: create, update, archive and lookups."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_access.common.ids import generate_uuid7
from identity_access.common.logging import log_context
from identity_access.db.base import utc_now
from identity_access.lifecycle import (
    OrganizationLifecycleContext,
    OrganizationLifecycleEvent,
    OrganizationLifecycleHookDispatcher,
)
from identity_access.models import Organization, OrganizationStatus
from identity_access.settings import Settings, get_settings

from .errors import OrganizationConflictError, OrganizationNotFoundError, OrganizationValidationError
from .schemas import OrganizationCreate, OrganizationUpdate

logger = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-_.]*$")


def _tenant_filter(stmt: Select, tenant_id: UUID | None) -> Select:
    if tenant_id is None:
        return stmt.where(Organization.tenant_id.is_(None))
    return stmt.where(Organization.tenant_id == tenant_id)


def _context_for(
    event: OrganizationLifecycleEvent,
    organization: Organization,
    *,
    actor_user_id: UUID | None = None,
    items: Mapping[str, object] | None = None,
) -> OrganizationLifecycleContext:
    return OrganizationLifecycleContext(
        event=event,
        organization_id=organization.id,
        organization_slug=organization.slug,
        organization_name=organization.display_name,
        actor_user_id=actor_user_id,
        organization=organization,
        items=items or {},
    )


class OrganizationService:
    """Create and maintain organizations, gated by lifecycle hooks."""

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

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(self, request: OrganizationCreate) -> Organization:
        slug = self._normalize_slug(request.slug)
        display_name = self._normalize_display_name(request.display_name)
        metadata = self._normalize_metadata(request.metadata)

        await self._ensure_slug_unique(request.tenant_id, slug)
        await self._ensure_display_name_unique(request.tenant_id, display_name)

        organization = Organization(
            id=generate_uuid7(),
            tenant_id=request.tenant_id,
            slug=slug,
            display_name=display_name,
            metadata_=metadata,
            status=OrganizationStatus.ACTIVE,
        )
        context = _context_for(
            OrganizationLifecycleEvent.ORGANIZATION_CREATED,
            organization,
            actor_user_id=request.created_by,
        )
        await self._dispatcher.ensure_can(context)

        self._session.add(organization)
        await self._session.commit()

        logger.info(
            "organizations.create.success",
            extra=log_context(
                tenant_id=organization.tenant_id,
                organization_id=organization.id,
                slug=organization.slug,
            ),
        )
        await self._dispatcher.notify(context)
        return organization

    async def update(self, organization_id: UUID, request: OrganizationUpdate) -> Organization:
        """Apply a partial update; no hooks run when nothing changes."""

        organization = await self._require(organization_id)

        changes: dict[str, object] = {}
        if request.display_name is not None and request.display_name.strip():
            display_name = self._normalize_display_name(request.display_name)
            if display_name != organization.display_name:
                await self._ensure_display_name_unique(
                    organization.tenant_id, display_name, exclude_id=organization.id
                )
                changes["display_name"] = display_name

        if request.metadata is not None:
            metadata = self._normalize_metadata(request.metadata)
            if metadata != dict(organization.metadata_ or {}):
                changes["metadata_"] = metadata

        archiving = restoring = False
        if request.status is not None:
            status = OrganizationStatus(request.status)
            if status != organization.status:
                changes["status"] = status
                archiving = status == OrganizationStatus.ARCHIVED
                restoring = not archiving

        if not changes:
            return organization

        update_context = _context_for(
            OrganizationLifecycleEvent.ORGANIZATION_UPDATED,
            organization,
            actor_user_id=request.updated_by,
            items={"request": request},
        )
        await self._dispatcher.ensure_can(update_context)

        status_context: OrganizationLifecycleContext | None = None
        if archiving:
            status_context = update_context.with_event(
                OrganizationLifecycleEvent.ORGANIZATION_ARCHIVED
            )
        elif restoring:
            status_context = update_context.with_event(
                OrganizationLifecycleEvent.ORGANIZATION_RESTORED
            )
        if status_context is not None:
            await self._dispatcher.ensure_can(status_context)

        now = utc_now()
        for attribute, value in changes.items():
            setattr(organization, attribute, value)
        if archiving:
            organization.archived_at = now
        elif restoring:
            organization.archived_at = None
        organization.updated_at = now
        await self._session.commit()

        logger.info(
            "organizations.update.success",
            extra=log_context(
                tenant_id=organization.tenant_id,
                organization_id=organization.id,
                fields=sorted(changes),
            ),
        )
        await self._dispatcher.notify(update_context)
        if status_context is not None:
            await self._dispatcher.notify(status_context)
        return organization

    async def archive(self, organization_id: UUID, *, actor_user_id: UUID | None = None) -> None:
        organization = await self._require(organization_id)
        if organization.status == OrganizationStatus.ARCHIVED:
            return

        context = _context_for(
            OrganizationLifecycleEvent.ORGANIZATION_ARCHIVED,
            organization,
            actor_user_id=actor_user_id,
        )
        await self._dispatcher.ensure_can(context)

        now = utc_now()
        organization.status = OrganizationStatus.ARCHIVED
        organization.archived_at = now
        organization.updated_at = now
        await self._session.commit()

        logger.info(
            "organizations.archive.success",
            extra=log_context(tenant_id=organization.tenant_id, organization_id=organization.id),
        )
        await self._dispatcher.notify(context)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, organization_id: UUID) -> Organization | None:
        return await self._session.get(Organization, organization_id)

    async def get_by_slug(self, tenant_id: UUID | None, slug: str) -> Organization | None:
        if not slug or not slug.strip():
            return None
        stmt = _tenant_filter(select(Organization), tenant_id).where(
            Organization.slug == self._normalize_slug(slug)
        )
        return await self._session.scalar(stmt)

    async def list_organizations(
        self,
        tenant_id: UUID | None,
        *,
        status: OrganizationStatus | None = None,
    ) -> list[Organization]:
        stmt = _tenant_filter(select(Organization), tenant_id).order_by(Organization.display_name)
        if status is not None:
            stmt = stmt.where(Organization.status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require(self, organization_id: UUID) -> Organization:
        organization = await self.get_by_id(organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)
        return organization

    def _normalize_slug(self, value: str | None) -> str:
        slug = (value or "").strip().lower()
        if not slug:
            raise OrganizationValidationError("Organization slug is required.")
        limit = self._settings.organization_slug_max_length
        if len(slug) > limit:
            raise OrganizationValidationError(
                f"Organization slug cannot exceed {limit} characters."
            )
        if not _SLUG_PATTERN.match(slug):
            raise OrganizationValidationError(
                "Organization slug may contain lowercase letters, digits, '-', '_' and '.', "
                "and must start with a letter or digit."
            )
        return slug

    def _normalize_display_name(self, value: str | None) -> str:
        display_name = (value or "").strip()
        if not display_name:
            raise OrganizationValidationError("Organization display name is required.")
        limit = self._settings.organization_display_name_max_length
        if len(display_name) > limit:
            raise OrganizationValidationError(
                f"Organization display name cannot exceed {limit} characters."
            )
        return display_name

    def _normalize_metadata(self, metadata: Mapping[str, str] | None) -> dict[str, str]:
        values = dict(metadata or {})
        key_limit = self._settings.organization_metadata_max_key_length
        value_limit = self._settings.organization_metadata_max_value_length
        for key, value in values.items():
            if len(key) > key_limit:
                raise OrganizationValidationError(
                    f"Metadata key '{key}' exceeds the maximum length of {key_limit} characters."
                )
            if value and len(value) > value_limit:
                raise OrganizationValidationError(
                    f"Metadata value for key '{key}' exceeds the maximum length of "
                    f"{value_limit} characters."
                )
        size = len(json.dumps(values, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))
        byte_limit = self._settings.organization_metadata_max_bytes
        if size > byte_limit:
            raise OrganizationValidationError(
                f"Metadata payload exceeds the maximum size of {byte_limit} bytes."
            )
        return values

    async def _ensure_slug_unique(
        self, tenant_id: UUID | None, slug: str, *, exclude_id: UUID | None = None
    ) -> None:
        stmt = _tenant_filter(select(Organization.id), tenant_id).where(Organization.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        if await self._session.scalar(stmt.limit(1)) is not None:
            raise OrganizationConflictError(
                f"An organization with slug '{slug}' already exists for the specified tenant."
            )

    async def _ensure_display_name_unique(
        self, tenant_id: UUID | None, display_name: str, *, exclude_id: UUID | None = None
    ) -> None:
        stmt = _tenant_filter(select(Organization.id), tenant_id).where(
            Organization.display_name == display_name
        )
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        if await self._session.scalar(stmt.limit(1)) is not None:
            raise OrganizationConflictError(
                f"An organization with display name '{display_name}' already exists "
                "for the specified tenant."
            )


__all__ = ["OrganizationService"]
