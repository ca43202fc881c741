"""Lifecycle events, the immutable hook context, and before-hook results."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID


class OrganizationLifecycleEvent(str, Enum):
    """State-changing operations gated by the lifecycle dispatcher."""

    ORGANIZATION_CREATED = "organization_created"
    ORGANIZATION_UPDATED = "organization_updated"
    ORGANIZATION_ARCHIVED = "organization_archived"
    ORGANIZATION_RESTORED = "organization_restored"
    INVITATION_CREATED = "invitation_created"
    INVITATION_REVOKED = "invitation_revoked"
    INVITATION_ACCEPTED = "invitation_accepted"
    MEMBER_ADDED = "member_added"
    MEMBERSHIP_UPDATED = "membership_updated"
    MEMBERSHIP_REVOKED = "membership_revoked"


def _freeze(items: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(items or {}))


@dataclass(frozen=True, slots=True)
class OrganizationLifecycleContext:
    """Snapshot handed to every listener for one operation.

    Built fresh per operation and never persisted. ``organization`` and
    ``invitation`` carry the ORM rows being changed; listeners must treat them
    as read-only.
    """

    event: OrganizationLifecycleEvent
    organization_id: UUID
    organization_slug: str | None = None
    organization_name: str | None = None
    actor_user_id: UUID | None = None
    target_user_id: UUID | None = None
    organization: Any | None = None
    invitation: Any | None = None
    items: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", _freeze(self.items))

    @property
    def operation(self) -> str:
        return self.event.value

    def with_event(self, event: OrganizationLifecycleEvent) -> OrganizationLifecycleContext:
        """Return a copy of this context for a follow-on event."""
        return dataclasses.replace(self, event=event, items=dict(self.items))


@dataclass(frozen=True, slots=True)
class LifecycleHookResult:
    """Outcome of a before-hook: continue, or reject with a reason."""

    succeeded: bool = True
    reason: str | None = None

    @classmethod
    def ok(cls) -> LifecycleHookResult:
        return _CONTINUE

    @classmethod
    def reject(cls, reason: str) -> LifecycleHookResult:
        return cls(succeeded=False, reason=reason)


_CONTINUE = LifecycleHookResult()


__all__ = [
    "LifecycleHookResult",
    "OrganizationLifecycleContext",
    "OrganizationLifecycleEvent",
]
