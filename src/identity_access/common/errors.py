"""Error taxonomy shared by every access-control service.

Services raise these (or feature-specific subclasses); the HTTP layer maps
them to Problem Details responses in :mod:`identity_access.common.problem_details`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class IdentityAccessError(Exception):
    """Base class for all access-control errors."""


class InvalidRequestError(IdentityAccessError, ValueError):
    """Raised when caller input fails validation."""


class UnknownEntityError(IdentityAccessError, LookupError):
    """Raised when a referenced role, permission, organization, or membership is missing."""

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        identifiers: Iterable[Any] = (),
    ) -> None:
        super().__init__(message)
        self.entity = entity
        self.identifiers = tuple(identifiers)


class ConflictError(IdentityAccessError):
    """Raised when an operation conflicts with the current state of the store."""


class ConcurrencyConflictError(ConflictError):
    """Raised when a concurrency stamp no longer matches the stored value."""

    def __init__(self, message: str = "Entity was modified by another process.") -> None:
        super().__init__(message)


class LifecycleHookRejectedError(IdentityAccessError):
    """Raised when a before-hook listener vetoes an operation."""

    def __init__(self, operation: str, reason: str | None = None) -> None:
        self.operation = operation
        self.reason = reason.strip() if reason and reason.strip() else None
        if self.reason:
            message = f"Lifecycle hook rejected operation '{operation}': {self.reason}"
        else:
            message = f"Lifecycle hook rejected operation '{operation}'."
        super().__init__(message)


class LifecycleHookExecutionError(IdentityAccessError):
    """Raised when a lifecycle listener fails unexpectedly.

    The listener's exception is attached as ``__cause__``.
    """

    def __init__(self, operation: str, *, listener: str | None = None) -> None:
        self.operation = operation
        self.listener = listener
        super().__init__(f"Lifecycle hook failed during '{operation}'.")


__all__ = [
    "ConcurrencyConflictError",
    "ConflictError",
    "IdentityAccessError",
    "InvalidRequestError",
    "LifecycleHookExecutionError",
    "LifecycleHookRejectedError",
    "UnknownEntityError",
]
