"""Pluggable contributors to a user's effective permission set."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class AdditionalPermissionSource(Protocol):
    """Contributes extra permission names for a user.

    Returning ``None`` contributes nothing.
    """

    async def get_permissions(self, user_id: UUID) -> Iterable[str] | None: ...


class StaticPermissionSource:
    """Grants a fixed set of permissions to selected users (or to everyone)."""

    def __init__(
        self,
        permissions: Iterable[str],
        *,
        user_ids: Iterable[UUID] | None = None,
    ) -> None:
        self._permissions = tuple(permissions)
        self._user_ids = frozenset(user_ids) if user_ids is not None else None

    async def get_permissions(self, user_id: UUID) -> Iterable[str] | None:
        if self._user_ids is not None and user_id not in self._user_ids:
            return None
        return self._permissions


__all__ = ["AdditionalPermissionSource", "StaticPermissionSource"]
