from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..errors import ConflictError, ValidationError
from ..models._common import utcnow
from ..models.user import User
from ..security import check_password, hash_password, random_password
from .linking import (
    ExternalIdentity,
    MergeIntoExisting,
    NewExternal,
    normalize_email,
    plan_external_link,
    plan_registration,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def public_profile(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "created_at": user.created_at,
    }


def find_by_email(db: Session, email: str) -> Optional[User]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def find_by_id(db: Session, user_id: str) -> Optional[User]:
    if not user_id:
        return None
    return db.get(User, user_id)


async def create_local_account(db: Session, email: str, name: str, password: str) -> Dict[str, Any]:
    if not email or not name or not password:
        raise ValidationError("Missing required fields: email, name, password")
    if not EMAIL_RE.match(email.strip()):
        raise ValidationError("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    plan = plan_registration(await run_in_threadpool(find_by_email, db, email), email, name)
    password_hash = await hash_password(password)
    user = User(email=plan.email, name=plan.name, password_hash=password_hash)
    await run_in_threadpool(_insert_user, db, user)
    logger.bind(tag="auth.register").info("local account created", user_id=user.id)
    return public_profile(user)


async def verify_password(user: User, password: str) -> bool:
    return await check_password(password, user.password_hash)


async def link_external_identity(
    db: Session,
    identity: ExternalIdentity,
    mode: Optional[str] = None,
) -> User:
    normalized = ExternalIdentity(
        email=normalize_email(identity.email),
        name=(identity.name or identity.email.split("@")[0]).strip(),
        subject=identity.subject,
        picture=identity.picture,
    )
    existing = await run_in_threadpool(find_by_email, db, normalized.email)
    plan = plan_external_link(existing, normalized, mode)

    if isinstance(plan, NewExternal):
        user = User(
            email=plan.identity.email,
            name=plan.identity.name,
            password_hash=await hash_password(random_password()),
            google_id=plan.identity.subject,
            profile_picture=plan.identity.picture,
            email_verified=True,
            last_login=utcnow(),
        )
        await run_in_threadpool(_insert_user, db, user)
        logger.bind(tag="auth.google").info("created account from google identity", user_id=user.id)
        return user

    return await run_in_threadpool(_merge_into_existing, db, plan)


def _merge_into_existing(db: Session, plan: MergeIntoExisting) -> User:
    user = find_by_id(db, plan.user_id)
    if user.google_id is None:
        user.google_id = plan.identity.subject
    if plan.identity.picture:
        user.profile_picture = plan.identity.picture
    user.email_verified = True
    user.last_login = utcnow()
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("This Google account is already linked to another user") from exc
    db.refresh(user)
    return user


def record_login(db: Session, user: User) -> None:
    user.last_login = utcnow()
    db.commit()


def store_oauth_tokens(
    db: Session,
    user: User,
    access_token: str,
    refresh_token: Optional[str],
    expires_at: Optional[datetime],
) -> User:
    user.google_access_token = access_token
    if refresh_token:
        user.google_refresh_token = refresh_token
    user.token_expires_at = expires_at
    db.commit()
    db.refresh(user)
    return user


def clear_oauth_tokens(db: Session, user: User) -> None:
    user.google_access_token = None
    user.google_refresh_token = None
    user.token_expires_at = None
    db.commit()


def is_calendar_connected(user: Optional[User]) -> bool:
    return bool(user is not None and user.google_refresh_token)


def _insert_user(db: Session, user: User) -> None:
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("An account with this email already exists") from exc
    db.refresh(user)
