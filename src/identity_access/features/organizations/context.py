"""The organization the current request acts on."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from .permissions import OrganizationPermissionResolver


@dataclass(frozen=True, slots=True)
class OrganizationContext:
    organization_id: UUID
    slug: str | None = None
    display_name: str | None = None
    tenant_id: UUID | None = None


_CURRENT_ORGANIZATION: ContextVar[OrganizationContext | None] = ContextVar(
    "identity_access_current_organization",
    default=None,
)


class OrganizationContextAccessor:
    """Read and scope the organization bound to the current task."""

    @property
    def current(self) -> OrganizationContext | None:
        return _CURRENT_ORGANIZATION.get()

    @property
    def has_organization(self) -> bool:
        return _CURRENT_ORGANIZATION.get() is not None

    @contextmanager
    def begin_scope(self, context: OrganizationContext | None) -> Iterator[OrganizationContext | None]:
        """Bind ``context`` until the block exits, then restore the previous value."""

        token = _CURRENT_ORGANIZATION.set(context)
        try:
            yield context
        finally:
            _CURRENT_ORGANIZATION.reset(token)


class OrganizationAdditionalPermissionSource:
    """Contributes the user's permissions in the currently scoped organization."""

    def __init__(
        self,
        *,
        accessor: OrganizationContextAccessor,
        resolver: OrganizationPermissionResolver,
    ) -> None:
        self._accessor = accessor
        self._resolver = resolver

    async def get_permissions(self, user_id: UUID) -> Iterable[str] | None:
        context = self._accessor.current
        if context is None:
            return None
        return await self._resolver.get_organization_permissions(context.organization_id, user_id)


__all__ = [
    "OrganizationAdditionalPermissionSource",
    "OrganizationContext",
    "OrganizationContextAccessor",
]
