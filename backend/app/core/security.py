# Low-level credential primitives: password hashing and JWT signing.
# Nothing here touches the database; the stateful parts live in
# app.core.tokens (refresh-token records) and app.crud.users.

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings

# bcrypt only looks at the first 72 bytes of its input.
BCRYPT_MAX_PASSWORD_BYTES = 72


def get_password_hash(password: str, *, rounds: int | None = None) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError("Password exceeds 72 bytes")
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Constant-time check through bcrypt's own verify routine."""
    if not plain_password or not password_hash:
        return False
    encoded = plain_password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return get_password_hash("dummy-password-for-timing")


def burn_password_check(plain_password: str) -> None:
    """Spend one verify on a throwaway hash so unknown emails cost the same as known ones."""
    verify_password(plain_password or "x", _dummy_hash())


def encode_token(claims: dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + expires_delta).timestamp())
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """Verify signature and expiry. Raises JWTError on any failure."""
    return jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])


__all__ = [
    "BCRYPT_MAX_PASSWORD_BYTES",
    "JWTError",
    "burn_password_check",
    "decode_token",
    "encode_token",
    "get_password_hash",
    "verify_password",
]
