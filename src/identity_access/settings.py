"""Identity access settings (conventional Pydantic v2)."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# ---- Defaults ---------------------------------------------------------------

DEFAULT_DATABASE_URL = "sqlite:///./data/db/identity.sqlite"
DEFAULT_INVITATION_LIFETIME = timedelta(days=7)
DEFAULT_INVITATION_MIN_LIFETIME = timedelta(hours=1)
DEFAULT_INVITATION_MAX_LIFETIME = timedelta(days=30)

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


# ---- Definitions ------------------------------------------------------------


class PermissionDefinition(BaseModel):
    """Permission seeded into the catalog."""

    name: str
    description: str | None = None


class RoleDefinition(BaseModel):
    """Global role seeded with its permission names."""

    name: str
    description: str | None = None
    is_system_role: bool = False
    permissions: list[str] = Field(default_factory=list)


class OrganizationRoleDefinition(BaseModel):
    """Shared organization role seeded for every organization."""

    name: str
    description: str | None = None
    is_system_role: bool = True
    permissions: list[str] = Field(default_factory=list)


def _default_organization_roles() -> list[OrganizationRoleDefinition]:
    return [
        OrganizationRoleDefinition(
            name="OrgOwner",
            description="Full organization access",
            permissions=[
                "organizations.read",
                "organizations.manage",
                "organization.members.read",
                "organization.members.manage",
                "organization.roles.read",
                "organization.roles.manage",
            ],
        ),
        OrganizationRoleDefinition(
            name="OrgManager",
            description="Manage organization members",
            permissions=[
                "organizations.read",
                "organization.members.read",
                "organization.members.manage",
                "organization.roles.read",
            ],
        ),
        OrganizationRoleDefinition(
            name="OrgMember",
            description="Organization member",
            permissions=["organizations.read"],
        ),
    ]


# ---- Helpers ----------------------------------------------------------------

def _parse_duration(value: Any, *, field_name: str) -> timedelta:
    """Accept seconds (int/float/str) or '60s'/'5m'/'1h'/'14d'."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError(f"{field_name} must not be blank")
        try:
            seconds = float(s)
        except ValueError:
            unit = s[-1].lower()
            num = s[:-1].strip()
            if unit not in _UNIT_SECONDS or not num:
                raise ValueError(
                    f"{field_name} must be secs or 'Xs','Xm','Xh','Xd'"
                ) from None
            try:
                seconds = float(num) * _UNIT_SECONDS[unit]
            except ValueError as exc:
                raise ValueError(
                    f"{field_name} must be secs or 'Xs','Xm','Xh','Xd'"
                ) from exc
    else:
        raise TypeError(f"{field_name} must be number, duration string, or timedelta")
    if seconds <= 0:
        raise ValueError(f"{field_name} must be > 0 seconds")
    return timedelta(seconds=seconds)


def _names_from_env(value: Any) -> list[str]:
    """Comma string or list; strip empties; dedupe case-insensitively preserving order."""
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        items = [seg.strip() for seg in value.split(",")]
    elif isinstance(value, (list, tuple, set)):
        items = [str(x).strip() for x in value]
    else:
        raise TypeError("Expected string or list")

    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item and item.casefold() not in seen:
            seen.add(item.casefold())
            out.append(item)
    return out


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """Access-control settings loaded from IDENTITY_* environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IDENTITY_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Core
    app_name: str = "Identity Access API"
    logging_level: str = "INFO"

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_sqlite_journal_mode: str = "WAL"
    database_sqlite_synchronous: str = "NORMAL"
    database_sqlite_busy_timeout_ms: int = Field(30_000, ge=0)

    # Lifecycle hooks
    lifecycle_after_hook_failure: Literal["log", "bubble"] = "log"

    # Roles
    role_name_max_length: int = Field(128, ge=1)
    role_description_max_length: int = Field(512, ge=1)
    default_user_roles: Annotated[list[str], NoDecode] = Field(default_factory=list)
    seed_roles_on_unknown: bool = True
    permissions: list[PermissionDefinition] = Field(default_factory=list)
    roles: list[RoleDefinition] = Field(default_factory=list)

    # Organization roles
    organization_role_name_max_length: int = Field(128, ge=1)
    organization_role_description_max_length: int = Field(512, ge=1)
    organization_roles: list[OrganizationRoleDefinition] = Field(
        default_factory=_default_organization_roles
    )

    # Organizations
    organization_slug_max_length: int = Field(128, ge=1)
    organization_display_name_max_length: int = Field(256, ge=1)
    organization_metadata_max_key_length: int = Field(64, ge=1)
    organization_metadata_max_value_length: int = Field(1024, ge=1)
    organization_metadata_max_bytes: int = Field(8192, ge=1)
    organization_header_name: str = "X-Organization-Id"

    # Invitations
    invitation_default_lifetime: timedelta = Field(default=DEFAULT_INVITATION_LIFETIME)
    invitation_min_lifetime: timedelta = Field(default=DEFAULT_INVITATION_MIN_LIFETIME)
    invitation_max_lifetime: timedelta = Field(default=DEFAULT_INVITATION_MAX_LIFETIME)

    # ---- Validators ----

    @field_validator("logging_level", mode="before")
    @classmethod
    def _v_log_level(cls, v: Any) -> str:
        s = ("" if v is None else str(v).strip()).upper()
        return s or "INFO"

    @field_validator("lifecycle_after_hook_failure", mode="before")
    @classmethod
    def _v_after_hook_failure(cls, v: Any) -> str:
        if v in (None, ""):
            return "log"
        mode = str(v).strip().lower()
        if mode not in {"log", "bubble"}:
            raise ValueError("IDENTITY_LIFECYCLE_AFTER_HOOK_FAILURE must be 'log' or 'bubble'")
        return mode

    @field_validator("default_user_roles", mode="before")
    @classmethod
    def _v_default_roles(cls, v: Any) -> list[str]:
        return _names_from_env(v)

    @field_validator(
        "invitation_default_lifetime",
        "invitation_min_lifetime",
        "invitation_max_lifetime",
        mode="before",
    )
    @classmethod
    def _v_durations(cls, v: Any, info: ValidationInfo) -> timedelta:
        return _parse_duration(v, field_name=info.field_name)

    @model_validator(mode="after")
    def _v_invitation_window(self) -> Settings:
        if self.invitation_min_lifetime > self.invitation_max_lifetime:
            raise ValueError(
                "IDENTITY_INVITATION_MIN_LIFETIME must not exceed IDENTITY_INVITATION_MAX_LIFETIME"
            )
        return self

    # ---- Convenience ----

    @property
    def bubble_after_hook_failures(self) -> bool:
        return self.lifecycle_after_hook_failure == "bubble"


@lru_cache(maxsize=1)
def _build_settings() -> Settings:
    return Settings()


def get_settings() -> Settings:
    return _build_settings()


def reload_settings() -> Settings:
    _build_settings.cache_clear()
    return _build_settings()


__all__ = [
    "DEFAULT_DATABASE_URL",
    "OrganizationRoleDefinition",
    "PermissionDefinition",
    "RoleDefinition",
    "Settings",
    "get_settings",
    "reload_settings",
]
