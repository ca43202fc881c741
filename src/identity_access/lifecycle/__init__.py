"""Organization lifecycle hooks."""

from .context import LifecycleHookResult, OrganizationLifecycleContext, OrganizationLifecycleEvent
from .dispatcher import LifecycleHookFailureBehavior, OrganizationLifecycleHookDispatcher
from .listener import OrganizationLifecycleListener

__all__ = [
    "LifecycleHookFailureBehavior",
    "LifecycleHookResult",
    "OrganizationLifecycleContext",
    "OrganizationLifecycleEvent",
    "OrganizationLifecycleHookDispatcher",
    "OrganizationLifecycleListener",
]
