"""
Refuse to start with missing or weak token configuration.

Outside production only presence is checked, so local runs and tests can use
short throwaway secrets.
"""

from __future__ import annotations

from app.core.config import settings

MIN_SECRET_LENGTH = 32
PRODUCTION_ENVIRONMENTS = {"production", "prod"}
PLACEHOLDER_SECRETS = {"changeme", "change-me", "secret", "super-secret-key", "test", "dev"}


def _looks_like_placeholder(value: str) -> bool:
    lowered = value.strip().lower()
    return lowered in PLACEHOLDER_SECRETS or lowered.startswith("change-me")


def _missing_settings() -> list[str]:
    required = ("DATABASE_URL", "JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
    return [name for name in required if not getattr(settings, name, None)]


def _weak_secrets() -> list[str]:
    weak = []
    for name in ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET"):
        value = getattr(settings, name) or ""
        if len(value) < MIN_SECRET_LENGTH or _looks_like_placeholder(value):
            weak.append(name)
    # Each token kind needs its own signing key.
    if settings.JWT_ACCESS_SECRET == settings.JWT_REFRESH_SECRET and "JWT_REFRESH_SECRET" not in weak:
        weak.append("JWT_REFRESH_SECRET")
    return weak


def run_startup_checks() -> None:
    problems = []
    missing = _missing_settings()
    if missing:
        problems.append(f"Missing required settings: {', '.join(missing)}")
    elif (settings.ENVIRONMENT or "").strip().lower() in PRODUCTION_ENVIRONMENTS:
        weak = _weak_secrets()
        if weak:
            problems.append(f"Insecure settings detected: {', '.join(weak)}")
    if problems:
        raise RuntimeError("Startup checks failed. " + " ".join(problems))
