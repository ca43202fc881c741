"""Claims principal and permission-claim helpers.

Permissions travel as a single space-delimited ``permissions`` claim.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .names import merge_names, sort_names, unique_names

PERMISSIONS_CLAIM = "permissions"


@dataclass(frozen=True, slots=True)
class Claim:
    type: str
    value: str


class ClaimsPrincipal:
    """Ordered bag of claims describing an authenticated user."""

    def __init__(self, claims: Iterable[Claim] = ()) -> None:
        self._claims: list[Claim] = list(claims)

    def __iter__(self) -> Iterator[Claim]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    @property
    def claims(self) -> tuple[Claim, ...]:
        return tuple(self._claims)

    def find_all(self, claim_type: str) -> list[Claim]:
        return [claim for claim in self._claims if claim.type == claim_type]

    def find_first(self, claim_type: str) -> Claim | None:
        return next((claim for claim in self._claims if claim.type == claim_type), None)

    def has_claim(self, claim_type: str) -> bool:
        return self.find_first(claim_type) is not None

    def add_claim(self, claim: Claim) -> None:
        self._claims.append(claim)

    def add_claims(self, claims: Iterable[Claim]) -> None:
        self._claims.extend(claims)

    def remove_all(self, claim_type: str) -> int:
        before = len(self._claims)
        self._claims = [claim for claim in self._claims if claim.type != claim_type]
        return before - len(self._claims)

    def replace(self, claim_type: str, value: str) -> None:
        self.remove_all(claim_type)
        self._claims.append(Claim(claim_type, value))


# ---------------------------------------------------------------------------
# Permission helpers
# ---------------------------------------------------------------------------


def get_permissions(principal: ClaimsPrincipal) -> set[str]:
    """Every permission named by the principal's ``permissions`` claims."""

    return merge_names(
        *(claim.value.split() for claim in principal.find_all(PERMISSIONS_CLAIM))
    )


def has_permission(principal: ClaimsPrincipal, permission: str) -> bool:
    wanted = permission.strip().casefold()
    if not wanted:
        return False
    return any(name.casefold() == wanted for name in get_permissions(principal))


def has_any_permission(principal: ClaimsPrincipal, permissions: Iterable[str]) -> bool:
    granted = {name.casefold() for name in get_permissions(principal)}
    return any(name.casefold() in granted for name in unique_names(permissions))


def has_all_permissions(principal: ClaimsPrincipal, permissions: Iterable[str]) -> bool:
    granted = {name.casefold() for name in get_permissions(principal)}
    return all(name.casefold() in granted for name in unique_names(permissions))


def format_permissions_value(permissions: Iterable[str]) -> str:
    return " ".join(sort_names(merge_names(permissions)))


class PermissionClaimFormatter:
    """Render a permission set as claims for token issuance."""

    def format(self, permissions: Iterable[str]) -> list[Claim]:
        value = format_permissions_value(permissions)
        if not value:
            return []
        return [Claim(PERMISSIONS_CLAIM, value)]


__all__ = [
    "Claim",
    "ClaimsPrincipal",
    "PERMISSIONS_CLAIM",
    "PermissionClaimFormatter",
    "format_permissions_value",
    "get_permissions",
    "has_all_permissions",
    "has_any_permission",
    "has_permission",
]
