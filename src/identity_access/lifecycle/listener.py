"""Listener base class for organization lifecycle hooks.

Subclasses override only the hooks they care about. Every ``before_*`` hook
returns a :class:`LifecycleHookResult`; returning ``LifecycleHookResult.reject``
vetoes the operation. ``after_*`` hooks run once the change is committed.
"""

from __future__ import annotations

from .context import LifecycleHookResult, OrganizationLifecycleContext, OrganizationLifecycleEvent


def before_hook_name(event: OrganizationLifecycleEvent) -> str:
    return f"before_{event.value}"


def after_hook_name(event: OrganizationLifecycleEvent) -> str:
    return f"after_{event.value}"


class OrganizationLifecycleListener:
    """No-op listener; override hooks selectively."""

    # ---- organizations ------------------------------------------------------

    async def before_organization_created(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_organization_created(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_organization_updated(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_organization_updated(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_organization_archived(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_organization_archived(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_organization_restored(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_organization_restored(self, context: OrganizationLifecycleContext) -> None:
        return None

    # ---- invitations --------------------------------------------------------

    async def before_invitation_created(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_invitation_created(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_invitation_revoked(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_invitation_revoked(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_invitation_accepted(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_invitation_accepted(self, context: OrganizationLifecycleContext) -> None:
        return None

    # ---- memberships --------------------------------------------------------

    async def before_member_added(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_member_added(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_membership_updated(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_membership_updated(self, context: OrganizationLifecycleContext) -> None:
        return None

    async def before_membership_revoked(
        self, context: OrganizationLifecycleContext
    ) -> LifecycleHookResult:
        return LifecycleHookResult.ok()

    async def after_membership_revoked(self, context: OrganizationLifecycleContext) -> None:
        return None


__all__ = ["OrganizationLifecycleListener", "after_hook_name", "before_hook_name"]
