from __future__ import annotations

import hashlib
from datetime import timedelta
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..models._common import utcnow
from ..models.session import UserSession

UNKNOWN_CLIENT = "unknown"


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def record_session(
    db: Session,
    user_id: str,
    raw_token: str,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> UserSession:
    now = utcnow()
    record = UserSession(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        user_agent=user_agent or UNKNOWN_CLIENT,
        ip_address=(ip_address or UNKNOWN_CLIENT)[:50],
        expires_at=now + timedelta(days=settings.session_ttl_days),
        created_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def revoke_by_raw_token(db: Session, raw_token: str) -> int:
    deleted = (
        db.query(UserSession)
        .filter(UserSession.token_hash == hash_token(raw_token))
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.bind(tag="auth.session").info("session revoked", rows=deleted)
    return int(deleted or 0)


def is_session_active(db: Session, raw_token: str) -> bool:
    record = (
        db.query(UserSession)
        .filter(UserSession.token_hash == hash_token(raw_token), UserSession.expires_at > utcnow())
        .first()
    )
    return record is not None
