"""Unit tests for core/config.py -- layered settings resolution.

Covers:
- environment beats config.json, config.json beats defaults
- defaults apply when neither source sets a value
- the signing secret may come from config.json
- missing or short signing secret is a fatal ValidationError
- Settings is immutable and get_settings() is a singleton
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

_SECRET = "config-test-secret-0123456789-abcdefghijk"
_JWT_VARS = ("JWT_SECRET_KEY", "JWT_ISSUER", "JWT_AUDIENCE", "JWT_EXPIRATION_MINUTES")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove JWT_* variables and point the config file at a missing path."""
    for var in _JWT_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("USERDESK_CONFIG_FILE", str(tmp_path / "missing.json"))
    return monkeypatch


def _write_config(tmp_path, monkeypatch, values: dict) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(values), encoding="utf-8")
    monkeypatch.setenv("USERDESK_CONFIG_FILE", str(path))


def test_defaults_apply_when_unset(clean_env):
    clean_env.setenv("JWT_SECRET_KEY", _SECRET)
    s = Settings(_env_file=None)
    assert s.jwt_issuer == "UserDeskAPI"
    assert s.jwt_audience == "UserDeskUsers"
    assert s.jwt_expiration_minutes == 60
    assert s.protect_list_users is False
    assert s.protect_create_user is False


def test_config_file_overrides_defaults(clean_env, tmp_path):
    clean_env.setenv("JWT_SECRET_KEY", _SECRET)
    _write_config(tmp_path, clean_env, {"jwt_issuer": "FileIssuer", "jwt_expiration_minutes": 15})
    s = Settings(_env_file=None)
    assert s.jwt_issuer == "FileIssuer"
    assert s.jwt_expiration_minutes == 15
    assert s.jwt_audience == "UserDeskUsers"


def test_environment_overrides_config_file(clean_env, tmp_path):
    _write_config(
        tmp_path,
        clean_env,
        {"jwt_secret_key": "f" * 40, "jwt_issuer": "FileIssuer", "jwt_audience": "FileAudience"},
    )
    clean_env.setenv("JWT_SECRET_KEY", _SECRET)
    clean_env.setenv("JWT_ISSUER", "EnvIssuer")
    clean_env.setenv("JWT_EXPIRATION_MINUTES", "5")
    s = Settings(_env_file=None)
    assert s.jwt_secret_key == _SECRET
    assert s.jwt_issuer == "EnvIssuer"
    assert s.jwt_audience == "FileAudience"
    assert s.jwt_expiration_minutes == 5


def test_secret_can_come_from_config_file(clean_env, tmp_path):
    _write_config(tmp_path, clean_env, {"jwt_secret_key": _SECRET})
    assert Settings(_env_file=None).jwt_secret_key == _SECRET


def test_missing_secret_is_fatal(clean_env):
    with pytest.raises(ValidationError, match="JWT_SECRET_KEY is not configured"):
        Settings(_env_file=None)


def test_short_secret_is_rejected(clean_env):
    clean_env.setenv("JWT_SECRET_KEY", "too-short")
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None)


def test_non_positive_expiry_is_rejected(clean_env):
    clean_env.setenv("JWT_SECRET_KEY", _SECRET)
    clean_env.setenv("JWT_EXPIRATION_MINUTES", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_route_protection_flags_from_environment(clean_env):
    clean_env.setenv("JWT_SECRET_KEY", _SECRET)
    clean_env.setenv("PROTECT_LIST_USERS", "true")
    s = Settings(_env_file=None)
    assert s.protect_list_users is True
    assert s.protect_create_user is False


def test_settings_are_frozen(settings):
    with pytest.raises(ValidationError):
        settings.jwt_issuer = "changed"


def test_secret_not_in_repr(settings):
    assert settings.jwt_secret_key not in repr(settings)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
