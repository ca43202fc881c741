"""Optimistic concurrency helpers for rows versioned by ``concurrency_stamp``."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from identity_access.common.errors import ConcurrencyConflictError


def ensure_stamp(current: str, expected: str | None, *, message: str) -> None:
    """Raise when the caller's stamp differs from the stored one."""

    if expected is None or current != expected:
        raise ConcurrencyConflictError(message)


async def flush_or_conflict(session: AsyncSession, *, message: str) -> None:
    """Flush pending changes, translating stale versioned rows into a conflict."""

    try:
        await session.flush()
    except StaleDataError as exc:
        raise ConcurrencyConflictError(message) from exc


__all__ = ["ensure_stamp", "flush_or_conflict"]
