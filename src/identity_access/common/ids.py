"""Identifier helpers."""

from __future__ import annotations

import uuid
from collections.abc import Callable

__all__ = ["NIL_UUID", "generate_uuid7", "is_nil", "new_concurrency_stamp"]

NIL_UUID = uuid.UUID(int=0)


def _resolve_uuid7() -> Callable[[], uuid.UUID]:
    """Return a callable that produces a UUIDv7, falling back to uuid4 when absent."""

    maybe_uuid7 = getattr(uuid, "uuid7", None)
    if callable(maybe_uuid7):
        return maybe_uuid7
    return uuid.uuid4


_uuid7_factory = _resolve_uuid7()


def generate_uuid7() -> uuid.UUID:
    """Return a sortable UUID for primary keys (prefers RFC 9562 uuid7)."""

    return _uuid7_factory()


def new_concurrency_stamp(_context: object | None = None) -> str:
    """Return a fresh opaque concurrency stamp.

    Accepts (and ignores) the current value so it can be used directly as a
    SQLAlchemy ``version_id_generator``.
    """

    return uuid.uuid4().hex


def is_nil(value: uuid.UUID | None) -> bool:
    """Return True for ``None`` and the all-zero UUID."""

    return value is None or value == NIL_UUID
