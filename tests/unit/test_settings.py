from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from identity_access.settings import Settings, get_settings, reload_settings


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    yield
    reload_settings()


def test_defaults_seed_the_shared_organization_roles() -> None:
    settings = Settings(_env_file=None)

    names = [definition.name for definition in settings.organization_roles]
    assert names == ["OrgOwner", "OrgManager", "OrgMember"]
    assert settings.lifecycle_after_hook_failure == "log"
    assert settings.seed_roles_on_unknown is True
    assert settings.invitation_default_lifetime == timedelta(days=7)


def test_settings_reads_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        """
IDENTITY_LOGGING_LEVEL=debug
IDENTITY_DEFAULT_USER_ROLES=Reader, reader ,Auditor
IDENTITY_INVITATION_DEFAULT_LIFETIME=2d
IDENTITY_LIFECYCLE_AFTER_HOOK_FAILURE=BUBBLE
"""
    )
    monkeypatch.chdir(tmp_path)

    settings = reload_settings()

    assert settings is get_settings()
    assert settings.logging_level == "DEBUG"
    assert settings.default_user_roles == ["Reader", "Auditor"]
    assert settings.invitation_default_lifetime == timedelta(days=2)
    assert settings.bubble_after_hook_failures is True


def test_permission_catalog_from_json_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(
        "IDENTITY_ROLES",
        '[{"name": "Administrator", "is_system_role": true, "permissions": ["users.read"]}]',
    )

    settings = Settings(_env_file=None)

    assert settings.roles[0].name == "Administrator"
    assert settings.roles[0].permissions == ["users.read"]


@pytest.mark.parametrize("value", ["0", "-5m", "10w", " "])
def test_invalid_durations_are_rejected(value: str) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, invitation_min_lifetime=value)


def test_invitation_window_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, invitation_min_lifetime="2d", invitation_max_lifetime="1d")


def test_after_hook_failure_mode_is_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, lifecycle_after_hook_failure="explode")
