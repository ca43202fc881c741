"""Case-insensitive handling of permission and role names."""

from __future__ import annotations

from collections.abc import Iterable


def unique_names(values: Iterable[str | None] | None) -> list[str]:
    """Trim, drop blanks and dedupe case-insensitively; first spelling wins."""

    if not values:
        return []
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if value is None:
            continue
        candidate = str(value).strip()
        if not candidate:
            continue
        key = candidate.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(candidate)
    return out


def merge_names(*groups: Iterable[str | None] | None) -> set[str]:
    """Union several name collections, collapsing case-only duplicates."""

    merged: list[str] = []
    for group in groups:
        if group:
            merged.extend(name for name in group if name is not None)
    return set(unique_names(merged))


def sort_names(values: Iterable[str]) -> list[str]:
    return sorted(values, key=lambda value: (value.casefold(), value))


__all__ = ["merge_names", "sort_names", "unique_names"]
