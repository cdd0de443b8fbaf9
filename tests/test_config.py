"""
tests/test_config.py -- Settings validation.

Settings() is constructed directly (not via get_settings()) so each case sees
only the environment it sets up.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

_KEY = "k" * 32


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "BCRYPT_ROUNDS", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of these cases
    monkeypatch.setitem(Settings.model_config, "env_file", None)


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False)


def test_debug_generates_secret_key():
    settings = Settings(debug=True)
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=True, secret_key="too-short")


@pytest.mark.parametrize("rounds", [4, 11, 17])
def test_bcrypt_rounds_out_of_range_rejected(rounds):
    with pytest.raises(ValidationError):
        Settings(secret_key=_KEY, bcrypt_rounds=rounds)


def test_defaults():
    settings = Settings(secret_key=_KEY)
    assert settings.bcrypt_rounds == 12
    assert settings.database_url == "sqlite:///./orgvault.db"
    assert settings.token_expire_seconds == 3600


def test_env_vars_are_read(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", _KEY)
    monkeypatch.setenv("BCRYPT_ROUNDS", "13")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./elsewhere.db")
    settings = Settings()
    assert settings.bcrypt_rounds == 13
    assert settings.database_url == "sqlite:///./elsewhere.db"


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
