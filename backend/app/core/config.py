# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# Secrets are never hardcoded; the two JWT secrets must be supplied.

import json
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except ValueError:
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Deployment environment name ("development", "production", ...).
    ENVIRONMENT: str = "development"

    # Core DB connection string, like sqlite:///./app.db or a Postgres URL.
    DATABASE_URL: str

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Independent signing secrets for access and refresh tokens. A leaked
    # access secret must not allow forging refresh tokens and vice versa.
    JWT_ACCESS_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # Token lifetimes. Access tokens are stateless, refresh tokens are
    # checked against storage on every use.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, gt=0)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, gt=0)

    # bcrypt cost factor. 10 is roughly 100ms per hash on current hardware.
    BCRYPT_ROUNDS: int = Field(default=10, ge=4, le=16)
    PASSWORD_MIN_LENGTH: int = Field(default=8, ge=1)

    # Account lockout: consecutive failures before the account is locked,
    # and how long the lock lasts.
    MAX_FAILED_LOGIN_ATTEMPTS: int = Field(default=5, gt=0)
    LOCKOUT_MINUTES: int = Field(default=15, gt=0)

    # Best-effort throttling of register/login per client + tenant.
    AUTH_RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT_ATTEMPTS: int = Field(default=20, gt=0)
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, gt=0)

    # Proxy/client IP extraction settings
    TRUST_PROXY_HEADERS: bool = False
    TRUSTED_PROXY_IPS: Annotated[List[str], NoDecode] = Field(default_factory=list)
    TRUSTED_IP_HEADERS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "CF-Connecting-IP",
            "X-Forwarded-For",
            "X-Real-IP",
        ]
    )

    # Response hardening headers
    SECURITY_HEADERS_ENABLED: bool = True
    X_FRAME_OPTIONS: str = "DENY"
    REFERRER_POLICY: str = "no-referrer"
    HSTS_MAX_AGE: int = 31536000
    HSTS_INCLUDE_SUBDOMAINS: bool = True
    HSTS_PRELOAD: bool = False
    CSP_DEFAULT: str | None = None

    # Frontend origins allowed to call the API from a browser.
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["http://localhost:5173"])

    @field_validator("TRUSTED_PROXY_IPS", "TRUSTED_IP_HEADERS", "CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_list_values(cls, value):
        # Accept either a JSON list or a comma-separated string.
        if isinstance(value, str):
            decoded = safe_json_loads(value)
            if isinstance(decoded, list):
                return decoded
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return parts
        return value


# Instantiate a single settings object for app-wide import.
# Any module can just `from app.core.config import settings`.
settings = Settings()
