"""Bearer tokens, OAuth state and password hashing.

Bearer tokens are self-contained HS256 JWTs. Verification never touches the
database, so a token stays valid until ``exp`` even after its session row
has been revoked by logout.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from .config import settings
from .errors import AuthenticationError

ALGORITHM = "HS256"
OAUTH_STATE_PURPOSE = "calendar_connect"
OAUTH_STATE_TTL = timedelta(minutes=10)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    name: str


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(tz=timezone.utc)


def issue_token(claims: TokenClaims, now: Optional[datetime] = None) -> str:
    issued_at = _now(now)
    payload: Dict[str, Any] = {
        "sub": claims.user_id,
        "email": claims.email,
        "name": claims.name,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.token_ttl_days),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    if payload.get("purpose"):
        raise AuthenticationError("Invalid or expired token")
    return TokenClaims(
        user_id=str(payload["sub"]),
        email=payload.get("email") or "",
        name=payload.get("name") or "",
    )


def encode_oauth_state(user_id: str, now: Optional[datetime] = None) -> str:
    issued_at = _now(now)
    payload = {
        "sub": user_id,
        "purpose": OAUTH_STATE_PURPOSE,
        "iat": issued_at,
        "exp": issued_at + OAUTH_STATE_TTL,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_oauth_state(state: str) -> str:
    try:
        payload = jwt.decode(state, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid OAuth state") from exc
    if payload.get("purpose") != OAUTH_STATE_PURPOSE or not payload.get("sub"):
        raise AuthenticationError("Invalid OAuth state")
    return str(payload["sub"])


def verify_password_hash(password: str, hashed_password: str) -> bool:
    if not password or not hashed_password:
        return False
    try:
        return pwd_context.verify(password, hashed_password)
    except (ValueError, TypeError):
        return False


async def hash_password(password: str) -> str:
    return await run_in_threadpool(pwd_context.hash, password)


async def check_password(password: str, hashed_password: str) -> bool:
    return await run_in_threadpool(verify_password_hash, password, hashed_password)


def random_password() -> str:
    return secrets.token_hex(32)
