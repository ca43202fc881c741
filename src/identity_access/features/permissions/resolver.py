"""Combine global role permissions with additional permission sources."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from identity_access.common.ids import is_nil
from identity_access.common.logging import log_context

from .names import merge_names, unique_names
from .sources import AdditionalPermissionSource

logger = logging.getLogger(__name__)


class RolePermissionProvider(Protocol):
    async def get_effective_permissions(self, user_id: UUID) -> set[str]: ...


class CompositePermissionResolver:
    """Union of role-derived permissions and every registered source.

    Sources share the caller's database session, so they are awaited one after
    another in registration order.
    """

    def __init__(
        self,
        *,
        role_permissions: RolePermissionProvider,
        sources: Iterable[AdditionalPermissionSource] = (),
    ) -> None:
        self._role_permissions = role_permissions
        self._sources: tuple[AdditionalPermissionSource, ...] = tuple(sources)

    async def get_effective_permissions(self, user_id: UUID | None) -> set[str]:
        if is_nil(user_id):
            return set()

        role_permissions = await self._role_permissions.get_effective_permissions(user_id)
        groups: list[Iterable[str]] = [unique_names(role_permissions)]
        for source in self._sources:
            contributed = await source.get_permissions(user_id)
            if contributed is None:
                continue
            groups.append(unique_names(contributed))

        permissions = merge_names(*groups)
        logger.debug(
            "permissions.resolve.success",
            extra=log_context(
                user_id=user_id,
                sources=len(self._sources),
                count=len(permissions),
            ),
        )
        return permissions


__all__ = ["CompositePermissionResolver", "RolePermissionProvider"]
