from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

import pytest

from identity_access.common.errors import (
    LifecycleHookExecutionError,
    LifecycleHookRejectedError,
)
from identity_access.lifecycle import (
    LifecycleHookFailureBehavior,
    LifecycleHookResult,
    OrganizationLifecycleContext,
    OrganizationLifecycleEvent,
    OrganizationLifecycleHookDispatcher,
    OrganizationLifecycleListener,
)
from identity_access.settings import Settings

pytestmark = pytest.mark.asyncio


class RecordingListener(OrganizationLifecycleListener):
    def __init__(self, calls: list[str], label: str) -> None:
        self.calls = calls
        self.label = label

    async def before_member_added(self, context):
        self.calls.append(f"{self.label}:before")
        return LifecycleHookResult.ok()

    async def after_member_added(self, context):
        self.calls.append(f"{self.label}:after")


class RejectingListener(OrganizationLifecycleListener):
    async def before_member_added(self, context):
        return LifecycleHookResult.reject("  seat limit reached  ")


class ExplodingListener(OrganizationLifecycleListener):
    async def before_member_added(self, context):
        raise RuntimeError("boom")

    async def after_member_added(self, context):
        raise RuntimeError("after boom")


class RaisingRejectionListener(OrganizationLifecycleListener):
    async def before_member_added(self, context):
        raise LifecycleHookRejectedError("member_added", "seat limit")


class NoneListener(OrganizationLifecycleListener):
    async def before_member_added(self, context):
        return None


class FatalListener(OrganizationLifecycleListener):
    async def before_member_added(self, context):
        raise MemoryError()


def _context() -> OrganizationLifecycleContext:
    return OrganizationLifecycleContext(
        event=OrganizationLifecycleEvent.MEMBER_ADDED,
        organization_id=uuid4(),
        target_user_id=uuid4(),
        items={"role_ids": ()},
    )


async def test_before_hooks_run_in_registration_order() -> None:
    calls: list[str] = []
    dispatcher = OrganizationLifecycleHookDispatcher(
        [RecordingListener(calls, "a"), RecordingListener(calls, "b")]
    )

    await dispatcher.ensure_can(_context())

    assert calls == ["a:before", "b:before"]


async def test_rejection_stops_later_listeners() -> None:
    calls: list[str] = []
    dispatcher = OrganizationLifecycleHookDispatcher(
        [RejectingListener(), RecordingListener(calls, "late")]
    )

    with pytest.raises(LifecycleHookRejectedError) as excinfo:
        await dispatcher.ensure_can(_context())

    assert excinfo.value.operation == "member_added"
    assert excinfo.value.reason == "seat limit reached"
    assert calls == []


async def test_raised_rejection_is_not_wrapped() -> None:
    calls: list[str] = []
    dispatcher = OrganizationLifecycleHookDispatcher(
        [RaisingRejectionListener(), RecordingListener(calls, "late")]
    )

    with pytest.raises(LifecycleHookRejectedError) as excinfo:
        await dispatcher.ensure_can(_context())

    assert excinfo.value.reason == "seat limit"
    assert excinfo.value.__cause__ is None
    assert calls == []


async def test_before_hook_failure_is_wrapped_with_cause() -> None:
    dispatcher = OrganizationLifecycleHookDispatcher([ExplodingListener()])

    with pytest.raises(LifecycleHookExecutionError) as excinfo:
        await dispatcher.ensure_can(_context())

    assert excinfo.value.listener == "ExplodingListener"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


async def test_none_result_counts_as_success() -> None:
    dispatcher = OrganizationLifecycleHookDispatcher([NoneListener()])

    await dispatcher.ensure_can(_context())


async def test_fatal_errors_propagate_unwrapped() -> None:
    dispatcher = OrganizationLifecycleHookDispatcher([FatalListener()])

    with pytest.raises(MemoryError):
        await dispatcher.ensure_can(_context())


async def test_after_hook_failure_is_logged_and_dispatch_continues(caplog) -> None:
    calls: list[str] = []
    dispatcher = OrganizationLifecycleHookDispatcher(
        [ExplodingListener(), RecordingListener(calls, "late")]
    )

    with caplog.at_level(logging.ERROR, logger="identity_access.lifecycle.dispatcher"):
        await dispatcher.notify(_context())

    assert calls == ["late:after"]
    assert any(record.getMessage() == "lifecycle.after_hook.failed" for record in caplog.records)


async def test_after_hook_failure_bubbles_when_configured() -> None:
    calls: list[str] = []
    dispatcher = OrganizationLifecycleHookDispatcher(
        [ExplodingListener(), RecordingListener(calls, "late")],
        failure_behavior=LifecycleHookFailureBehavior.BUBBLE,
    )

    with pytest.raises(LifecycleHookExecutionError):
        await dispatcher.notify(_context())
    assert calls == []


async def test_cancellation_is_checked_before_each_listener() -> None:
    calls: list[str] = []
    cancellation = asyncio.Event()
    cancellation.set()
    dispatcher = OrganizationLifecycleHookDispatcher([RecordingListener(calls, "a")])

    with pytest.raises(asyncio.CancelledError):
        await dispatcher.ensure_can(_context(), cancellation)
    assert calls == []


async def test_no_listeners_is_a_no_op() -> None:
    dispatcher = OrganizationLifecycleHookDispatcher()

    await dispatcher.ensure_can(_context())
    await dispatcher.notify(_context())


async def test_failure_behavior_from_settings() -> None:
    settings = Settings(_env_file=None, lifecycle_after_hook_failure="bubble")

    dispatcher = OrganizationLifecycleHookDispatcher.from_settings(settings)

    assert dispatcher.failure_behavior is LifecycleHookFailureBehavior.BUBBLE


async def test_context_items_are_read_only() -> None:
    context = _context()

    with pytest.raises(TypeError):
        context.items["role_ids"] = ("x",)  # type: ignore[index]

    archived = context.with_event(OrganizationLifecycleEvent.ORGANIZATION_ARCHIVED)
    assert archived.operation == "organization_archived"
    assert archived.organization_id == context.organization_id
