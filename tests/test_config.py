"""
tests/test_config.py -- Settings validation (core/config.py).
"""

from __future__ import annotations

import pytest

from core.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_debug_generates_secret():
    settings = _settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_secret():
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        _settings(debug=False, secret_key="")


def test_short_secret_rejected():
    with pytest.raises(ValueError, match="at least 32"):
        _settings(debug=True, secret_key="short")


def test_negative_expiry_rejected():
    with pytest.raises(ValueError):
        _settings(debug=True, secret_key="k" * 32, token_expire_seconds=-1)


def test_defaults():
    settings = _settings(debug=True, secret_key="k" * 32)
    assert settings.token_expire_seconds == 0
    assert settings.default_role == "CUSTOMER"
    assert settings.rate_limit_enabled is True
    assert settings.database_url.startswith("sqlite:///")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "e" * 40)
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "900")
    monkeypatch.setenv("DEBUG", "false")
    settings = _settings()
    assert settings.secret_key == "e" * 40
    assert settings.token_expire_seconds == 900
