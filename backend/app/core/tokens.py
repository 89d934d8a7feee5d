"""
Access/refresh token issuance, verification, rotation and revocation.

Access tokens are stateless. Refresh tokens are also recorded server side
(as a SHA-256 of the token string) so that they can be revoked and so that a
rotated token can only ever be redeemed once.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidToken, ValidationError
from app.core.events import record_security_event
from app.core.security import JWTError, decode_token, encode_token
from app.core.time import utcnow
from app.crud.users import get_user_by_id
from app.models.enums import RoleEnum
from app.models.refresh_tokens import RefreshToken
from app.models.users import User
from app.tenancy.context import TokenClaims
from app.tenancy.errors import TenantMismatch

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def build_claims(user: User) -> dict[str, Any]:
    role = user.role.value if isinstance(user.role, RoleEnum) else str(user.role)
    return {
        "userId": user.id,
        "tenantId": user.tenant_id,
        "email": user.email,
        "role": role,
    }


def _access_ttl() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def _refresh_ttl() -> timedelta:
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def _mint_pair(claims: dict[str, Any]) -> tuple[TokenPair, RefreshToken]:
    # Fresh jti on both tokens so two pairs minted within the same second
    # never collide.
    access_token = encode_token(
        {**claims, "jti": str(uuid4()), "typ": ACCESS_TOKEN_TYPE},
        settings.JWT_ACCESS_SECRET,
        _access_ttl(),
    )
    refresh_jti = str(uuid4())
    refresh_token = encode_token(
        {**claims, "jti": refresh_jti, "typ": REFRESH_TOKEN_TYPE},
        settings.JWT_REFRESH_SECRET,
        _refresh_ttl(),
    )
    record = RefreshToken(
        token_hash=hash_token(refresh_token),
        jti=refresh_jti,
        user_id=claims["userId"],
        tenant_id=claims["tenantId"],
        expires_at=utcnow() + _refresh_ttl(),
    )
    return TokenPair(access_token=access_token, refresh_token=refresh_token), record


def _parse_claims(payload: dict[str, Any], expected_type: str) -> TokenClaims:
    if payload.get("typ") != expected_type:
        raise InvalidToken()
    try:
        return TokenClaims(
            user_id=int(payload["userId"]),
            tenant_id=str(payload["tenantId"]),
            email=str(payload["email"]),
            role=RoleEnum(payload["role"]),
            jti=str(payload["jti"]),
            exp=int(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken() from exc


def issue_token_pair(db: Session, user: User, *, commit: bool = True) -> TokenPair:
    pair, record = _mint_pair(build_claims(user))
    db.add(record)
    if commit:
        db.commit()
    else:
        db.flush()
    return pair


def verify_access_token(token: str | None) -> TokenClaims:
    if not token:
        raise InvalidToken("Access token required")
    try:
        payload = decode_token(token, settings.JWT_ACCESS_SECRET)
    except JWTError as exc:
        raise InvalidToken() from exc
    return _parse_claims(payload, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str | None) -> TokenClaims:
    if not token:
        raise InvalidToken()
    try:
        payload = decode_token(token, settings.JWT_REFRESH_SECRET)
    except JWTError as exc:
        raise InvalidToken() from exc
    return _parse_claims(payload, REFRESH_TOKEN_TYPE)


def refresh_token_pair(
    db: Session,
    refresh_token: str | None,
    tenant_id: str,
    *,
    request=None,
) -> TokenPair:
    """
    Exchange a refresh token for a new pair, revoking the old one.

    Checks run in this order: stored record exists and is unexpired, the
    signature verifies, the token's tenant equals the request tenant, the
    user is still active. Of N concurrent calls with the same token at most
    one succeeds; the others get InvalidToken.
    """
    if not refresh_token:
        raise ValidationError("Refresh token required")

    now = utcnow()
    token_hash = hash_token(refresh_token)
    record = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
    if record is None or record.expires_at <= now:
        record_security_event(
            db,
            tenant_id,
            "refresh_rejected",
            success=False,
            request=request,
            details={"reason": "unknown_or_expired"},
        )
        raise InvalidToken()

    claims = verify_refresh_token(refresh_token)

    if claims.tenant_id != tenant_id or record.tenant_id != tenant_id:
        record_security_event(
            db,
            tenant_id,
            "tenant_mismatch",
            success=False,
            user_id=claims.user_id,
            email=claims.email,
            request=request,
            details={"token_tenant_id": claims.tenant_id, "flow": "refresh"},
        )
        raise TenantMismatch()

    user = get_user_by_id(db, tenant_id, claims.user_id)
    if user is None or not user.is_active:
        record_security_event(
            db,
            tenant_id,
            "refresh_rejected",
            success=False,
            user_id=claims.user_id,
            request=request,
            details={"reason": "user_inactive"},
        )
        raise InvalidToken("User not found or inactive")

    new_pair, new_record = _mint_pair(build_claims(user))
    # The conditional delete is the single point of truth for "this token was
    # still live"; losers of a concurrent race see rowcount 0.
    revoked = db.execute(
        delete(RefreshToken)
        .where(
            RefreshToken.token_hash == token_hash,
            RefreshToken.tenant_id == tenant_id,
            RefreshToken.expires_at > now,
        )
        .execution_options(synchronize_session=False)
    )
    if not revoked.rowcount:
        db.rollback()
        raise InvalidToken()
    db.add(new_record)
    db.commit()

    record_security_event(
        db,
        tenant_id,
        "refresh",
        success=True,
        user_id=user.id,
        email=user.email,
        request=request,
    )
    return new_pair


def revoke_refresh_token(
    db: Session,
    refresh_token: str,
    *,
    tenant_id: str | None = None,
    user_id: int | None = None,
) -> bool:
    """Idempotent; returns whether a live record was removed."""
    query = delete(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
    if tenant_id is not None:
        query = query.where(RefreshToken.tenant_id == tenant_id)
    if user_id is not None:
        query = query.where(RefreshToken.user_id == user_id)
    result = db.execute(query.execution_options(synchronize_session=False))
    db.commit()
    return bool(result.rowcount)


def revoke_all_refresh_tokens(db: Session, user_id: int, tenant_id: str) -> int:
    result = db.execute(
        delete(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.tenant_id == tenant_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def purge_expired_refresh_tokens(db: Session) -> int:
    result = db.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at <= utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
