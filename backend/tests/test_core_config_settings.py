import os

# Ensure required settings exist before imports.
os.environ.setdefault("SKIP_MIGRATIONS", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from pydantic import ValidationError  # noqa: E402

import app.core.startup_checks as startup_checks  # noqa: E402
from app.core.config import Settings  # noqa: E402

STRONG_ACCESS = "a" * 40
STRONG_REFRESH = "b" * 40


def _settings(monkeypatch, **env):
    for key in (
        "ACCESS_TOKEN_EXPIRE_MINUTES",
        "BCRYPT_ROUNDS",
        "CORS_ORIGINS",
        "TRUSTED_PROXY_IPS",
        "ENVIRONMENT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("JWT_ACCESS_SECRET", "access")
    monkeypatch.setenv("JWT_REFRESH_SECRET", "refresh")
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Settings(_env_file=None)


def test_settings_defaults(monkeypatch):
    cfg = _settings(monkeypatch)
    assert cfg.ACCESS_TOKEN_EXPIRE_MINUTES == 15
    assert cfg.REFRESH_TOKEN_EXPIRE_DAYS == 7
    assert cfg.BCRYPT_ROUNDS == 10
    assert cfg.MAX_FAILED_LOGIN_ATTEMPTS == 5
    assert cfg.LOCKOUT_MINUTES == 15
    assert cfg.PASSWORD_MIN_LENGTH == 8
    assert cfg.JWT_ALGORITHM == "HS256"
    assert cfg.CORS_ORIGINS == ["http://localhost:5173"]
    assert cfg.ENVIRONMENT == "development"


def test_settings_env_overrides(monkeypatch):
    cfg = _settings(
        monkeypatch,
        ACCESS_TOKEN_EXPIRE_MINUTES="5",
        CORS_ORIGINS="https://a.example.com, https://b.example.com",
        TRUSTED_PROXY_IPS='["10.0.0.0/8"]',
    )
    assert cfg.ACCESS_TOKEN_EXPIRE_MINUTES == 5
    assert cfg.CORS_ORIGINS == ["https://a.example.com", "https://b.example.com"]
    assert cfg.TRUSTED_PROXY_IPS == ["10.0.0.0/8"]


def test_settings_require_jwt_secrets(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.delenv("JWT_ACCESS_SECRET", raising=False)
    monkeypatch.setenv("JWT_REFRESH_SECRET", "refresh")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_bcrypt_rounds_are_bounded(monkeypatch):
    with pytest.raises(ValidationError):
        _settings(monkeypatch, BCRYPT_ROUNDS="3")


def test_startup_checks_pass_in_development(monkeypatch):
    monkeypatch.setattr(startup_checks, "settings", _settings(monkeypatch))
    startup_checks.run_startup_checks()


@pytest.mark.parametrize(
    "access, refresh, flagged",
    [
        ("changeme", STRONG_REFRESH, "JWT_ACCESS_SECRET"),
        (STRONG_ACCESS, "short", "JWT_REFRESH_SECRET"),
        (STRONG_ACCESS, STRONG_ACCESS, "JWT_REFRESH_SECRET"),
    ],
)
def test_startup_checks_reject_weak_secrets_in_production(monkeypatch, access, refresh, flagged):
    cfg = _settings(
        monkeypatch,
        ENVIRONMENT="production",
        JWT_ACCESS_SECRET=access,
        JWT_REFRESH_SECRET=refresh,
    )
    monkeypatch.setattr(startup_checks, "settings", cfg)
    with pytest.raises(RuntimeError) as excinfo:
        startup_checks.run_startup_checks()
    assert flagged in str(excinfo.value)


def test_startup_checks_accept_strong_production_secrets(monkeypatch):
    cfg = _settings(
        monkeypatch,
        ENVIRONMENT="production",
        JWT_ACCESS_SECRET=STRONG_ACCESS,
        JWT_REFRESH_SECRET=STRONG_REFRESH,
    )
    monkeypatch.setattr(startup_checks, "settings", cfg)
    startup_checks.run_startup_checks()
