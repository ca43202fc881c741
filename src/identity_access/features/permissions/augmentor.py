"""Merge resolved permissions into a principal's ``permissions`` claim."""

from __future__ import annotations

import logging
from uuid import UUID

from identity_access.common.logging import log_context

from .claims import PERMISSIONS_CLAIM, ClaimsPrincipal, format_permissions_value
from .resolver import CompositePermissionResolver

logger = logging.getLogger(__name__)


class PermissionClaimsAugmentor:
    def __init__(self, *, resolver: CompositePermissionResolver) -> None:
        self._resolver = resolver

    async def augment(self, user_id: UUID | None, principal: ClaimsPrincipal) -> None:
        """Collapse existing and resolved permissions into one sorted claim.

        The principal is left untouched when nothing resolves.
        """

        resolved = await self._resolver.get_effective_permissions(user_id)
        if not resolved:
            return

        existing: list[str] = []
        for claim in principal.find_all(PERMISSIONS_CLAIM):
            existing.extend(claim.value.split())

        principal.replace(PERMISSIONS_CLAIM, format_permissions_value([*existing, *resolved]))
        logger.debug(
            "permissions.claims.augmented",
            extra=log_context(user_id=user_id, resolved=len(resolved)),
        )


__all__ = ["PermissionClaimsAugmentor"]
