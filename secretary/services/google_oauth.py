"""Google OAuth2 token lifecycle for calendar access.

The consent flow stores an access/refresh token pair on the user. Calendar
calls go through :func:`get_valid_access_token`, which refreshes an expired
access token once and persists the result. Refresh failures are surfaced as
``ReauthorizationRequired`` and never retried.
"""
from __future__ import annotations

import asyncio
import time
import weakref
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from loguru import logger
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..errors import CalendarNotConnected, ExternalServiceError, NotFoundError, ReauthorizationRequired
from ..models._common import as_utc, utcnow
from ..models.user import User
from ..security import decode_oauth_state, encode_oauth_state
from ..store import users as user_store

GOOGLE_AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/calendar",
]

_refresh_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _require_client_config() -> None:
    if not settings.google_oauth_configured:
        raise ExternalServiceError("Google OAuth is not configured")


def _oauth_client() -> AsyncOAuth2Client:
    _require_client_config()
    return AsyncOAuth2Client(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        scope=" ".join(CALENDAR_SCOPES),
        redirect_uri=settings.google_redirect_uri,
        token_endpoint_auth_method="client_secret_post",
        timeout=settings.http_timeout_sec,
    )


def _token_expiry(token: Dict[str, Any]) -> Optional[datetime]:
    exp = token.get("expires_at")
    if isinstance(exp, (int, float)):
        return datetime.fromtimestamp(int(exp), tz=timezone.utc)
    expires_in = token.get("expires_in")
    if isinstance(expires_in, (int, float)) or (isinstance(expires_in, str) and expires_in.isdigit()):
        return datetime.fromtimestamp(int(time.time() + int(expires_in)), tz=timezone.utc)
    return None


def _lock_for(user_id: str) -> asyncio.Lock:
    lock = _refresh_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _refresh_locks[user_id] = lock
    return lock


def access_token_is_fresh(user: User, now: Optional[datetime] = None) -> bool:
    expiry = as_utc(user.token_expires_at)
    if not user.google_access_token or expiry is None:
        return False
    return expiry > (now or utcnow())


async def build_authorization_url(user_id: str) -> str:
    async with _oauth_client() as client:
        url, _ = client.create_authorization_url(
            GOOGLE_AUTH_ENDPOINT,
            state=encode_oauth_state(user_id),
            access_type="offline",
            prompt="consent",
        )
    return url


async def exchange_authorization_code(db: Session, code: str, state: str) -> User:
    user_id = decode_oauth_state(state)
    user = await run_in_threadpool(user_store.find_by_id, db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    try:
        async with _oauth_client() as client:
            token = await client.fetch_token(GOOGLE_TOKEN_ENDPOINT, code=code)
    except (OAuthError, httpx.HTTPError, ValueError) as exc:
        logger.bind(tag="calendar.oauth").warning("authorization code exchange failed", error=str(exc))
        raise ExternalServiceError("Google authorization failed") from exc

    access_token = token.get("access_token")
    if not access_token:
        raise ExternalServiceError("Google authorization failed")
    await run_in_threadpool(
        user_store.store_oauth_tokens,
        db,
        user,
        access_token,
        token.get("refresh_token"),
        _token_expiry(token),
    )
    logger.bind(tag="calendar.oauth").info("calendar connected", user_id=user.id)
    return user


async def get_valid_access_token(db: Session, user: User) -> str:
    if not user_store.is_calendar_connected(user):
        raise CalendarNotConnected()
    if access_token_is_fresh(user):
        return user.google_access_token

    async with _lock_for(user.id):
        # another request may have refreshed while we waited
        await run_in_threadpool(db.refresh, user)
        if not user_store.is_calendar_connected(user):
            raise CalendarNotConnected()
        if access_token_is_fresh(user):
            return user.google_access_token
        return await _refresh_access_token(db, user)


async def _refresh_access_token(db: Session, user: User) -> str:
    _require_client_config()
    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "refresh_token": user.google_refresh_token,
        "grant_type": "refresh_token",
    }
    log = logger.bind(tag="calendar.oauth", user_id=user.id)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_sec) as client:
            resp = await client.post(GOOGLE_TOKEN_ENDPOINT, data=data)
    except httpx.HTTPError as exc:
        log.warning("token refresh request failed", error=str(exc))
        raise ReauthorizationRequired() from exc
    if resp.status_code >= 400:
        log.warning("token refresh rejected", status=resp.status_code)
        raise ReauthorizationRequired()

    try:
        payload = resp.json()
    except ValueError as exc:
        raise ReauthorizationRequired() from exc
    access_token = payload.get("access_token")
    if not access_token:
        raise ReauthorizationRequired()

    await run_in_threadpool(
        user_store.store_oauth_tokens,
        db,
        user,
        access_token,
        payload.get("refresh_token"),
        _token_expiry(payload) or datetime.fromtimestamp(time.time() + 3600, tz=timezone.utc),
    )
    log.info("access token refreshed")
    return access_token
