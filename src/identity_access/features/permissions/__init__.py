"""Permission resolution and claims."""

from .augmentor import PermissionClaimsAugmentor
from .claims import PERMISSIONS_CLAIM, Claim, ClaimsPrincipal, PermissionClaimFormatter
from .resolver import CompositePermissionResolver
from .sources import AdditionalPermissionSource, StaticPermissionSource

__all__ = [
    "AdditionalPermissionSource",
    "Claim",
    "ClaimsPrincipal",
    "CompositePermissionResolver",
    "PERMISSIONS_CLAIM",
    "PermissionClaimFormatter",
    "PermissionClaimsAugmentor",
    "StaticPermissionSource",
]
