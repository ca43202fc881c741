"""Dispatch organization lifecycle hooks to registered listeners.

Before-hooks gate an operation: the first rejection or failure stops dispatch.
After-hooks react to a committed change: failures either bubble or are logged,
depending on :class:`LifecycleHookFailureBehavior`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from enum import Enum

from identity_access.common.errors import (
    LifecycleHookExecutionError,
    LifecycleHookRejectedError,
)
from identity_access.common.logging import log_context
from identity_access.settings import Settings

from .context import LifecycleHookResult, OrganizationLifecycleContext
from .listener import OrganizationLifecycleListener, after_hook_name, before_hook_name

logger = logging.getLogger(__name__)

# Never wrapped; these propagate as-is.
_FATAL_ERRORS: tuple[type[BaseException], ...] = (MemoryError, RecursionError)


class LifecycleHookFailureBehavior(str, Enum):
    """What the after phase does when a listener raises."""

    LOG = "log"
    BUBBLE = "bubble"


def _is_fatal(exc: BaseException) -> bool:
    return isinstance(exc, _FATAL_ERRORS) or not isinstance(exc, Exception)


def _check_cancelled(cancellation: asyncio.Event | None) -> None:
    if cancellation is not None and cancellation.is_set():
        raise asyncio.CancelledError()


class OrganizationLifecycleHookDispatcher:
    """Run before/after hooks for organization, membership and invitation events."""

    def __init__(
        self,
        listeners: Iterable[OrganizationLifecycleListener] = (),
        *,
        failure_behavior: LifecycleHookFailureBehavior = LifecycleHookFailureBehavior.LOG,
    ) -> None:
        self._listeners: tuple[OrganizationLifecycleListener, ...] = tuple(listeners)
        self._failure_behavior = failure_behavior

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        listeners: Iterable[OrganizationLifecycleListener] = (),
    ) -> OrganizationLifecycleHookDispatcher:
        behavior = (
            LifecycleHookFailureBehavior.BUBBLE
            if settings.bubble_after_hook_failures
            else LifecycleHookFailureBehavior.LOG
        )
        return cls(listeners, failure_behavior=behavior)

    @property
    def listeners(self) -> Sequence[OrganizationLifecycleListener]:
        return self._listeners

    @property
    def failure_behavior(self) -> LifecycleHookFailureBehavior:
        return self._failure_behavior

    # ------------------------------------------------------------------
    # Before phase
    # ------------------------------------------------------------------

    async def ensure_can(
        self,
        context: OrganizationLifecycleContext,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Run every before-hook; raise on the first rejection or failure."""

        hook_name = before_hook_name(context.event)
        for listener in self._listeners:
            _check_cancelled(cancellation)
            hook = getattr(listener, hook_name)
            try:
                result = await hook(context)
            except LifecycleHookRejectedError:
                raise
            except BaseException as exc:
                if _is_fatal(exc):
                    raise
                logger.warning(
                    "lifecycle.before_hook.failed",
                    extra=log_context(
                        organization_id=context.organization_id,
                        operation=context.operation,
                        listener=type(listener).__name__,
                    ),
                )
                raise LifecycleHookExecutionError(
                    context.operation,
                    listener=type(listener).__name__,
                ) from exc

            if result is None:
                result = LifecycleHookResult.ok()
            if not result.succeeded:
                logger.info(
                    "lifecycle.before_hook.rejected",
                    extra=log_context(
                        organization_id=context.organization_id,
                        operation=context.operation,
                        listener=type(listener).__name__,
                        reason=result.reason,
                    ),
                )
                raise LifecycleHookRejectedError(context.operation, result.reason)

    # ------------------------------------------------------------------
    # After phase
    # ------------------------------------------------------------------

    async def notify(
        self,
        context: OrganizationLifecycleContext,
        cancellation: asyncio.Event | None = None,
    ) -> None:
        """Run every after-hook; failures bubble or are logged per configuration."""

        hook_name = after_hook_name(context.event)
        for listener in self._listeners:
            _check_cancelled(cancellation)
            hook = getattr(listener, hook_name)
            try:
                await hook(context)
            except BaseException as exc:
                if _is_fatal(exc):
                    raise
                if self._failure_behavior is LifecycleHookFailureBehavior.BUBBLE:
                    raise LifecycleHookExecutionError(
                        context.operation,
                        listener=type(listener).__name__,
                    ) from exc
                logger.error(
                    "lifecycle.after_hook.failed",
                    exc_info=exc,
                    extra=log_context(
                        organization_id=context.organization_id,
                        operation=context.operation,
                        listener=type(listener).__name__,
                    ),
                )


__all__ = [
    "LifecycleHookFailureBehavior",
    "OrganizationLifecycleHookDispatcher",
]
