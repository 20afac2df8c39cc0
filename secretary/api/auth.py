from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials
from loguru import logger
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from secretary.api.deps import bearer_scheme, client_ip, get_bearer_token, get_current_claims
from secretary.db import get_db
from secretary.errors import AppError, AuthenticationError, NotFoundError, ValidationError
from secretary.models.user import User
from secretary.schemas.auth import GoogleAuthRequest, LoginRequest, RegisterRequest, UserProfile, UserSummary
from secretary.security import TokenClaims, issue_token, verify_token
from secretary.services import google_oauth
from secretary.services.google_identity import verify_google_id_token
from secretary.store import sessions as session_store
from secretary.store import users as user_store

router = APIRouter(tags=["auth"])

DASHBOARD_PATH = "/dashboard.html"


def _start_session(db: Session, request: Request, user: User) -> str:
    token = issue_token(TokenClaims(user_id=user.id, email=user.email, name=user.name))
    session_store.record_session(
        db,
        user.id,
        token,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return token


def _user_summary(user: User) -> Dict[str, Any]:
    return UserSummary.model_validate(user).model_dump(mode="json")


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    profile = await user_store.create_local_account(db, body.email or "", body.name or "", body.password or "")
    user = await run_in_threadpool(user_store.find_by_id, db, profile["id"])
    token = await run_in_threadpool(_start_session, db, request, user)
    return {
        "success": True,
        "message": "Account created successfully",
        "token": token,
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }


@router.post("/login")
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")
    user = await run_in_threadpool(user_store.find_by_email, db, body.email)
    if user is None or not await user_store.verify_password(user, body.password):
        logger.bind(tag="auth.login").info("login rejected", client=client_ip(request))
        raise AuthenticationError("Invalid email or password")

    await run_in_threadpool(user_store.record_login, db, user)
    token = await run_in_threadpool(_start_session, db, request, user)
    logger.bind(tag="auth.login").info("login succeeded", user_id=user.id)
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": _user_summary(user),
    }


@router.post("/google")
async def google_sign_in(body: GoogleAuthRequest, request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not body.token:
        raise ValidationError("Token required")
    identity = await verify_google_id_token(body.token)
    user = await user_store.link_external_identity(db, identity, body.mode)
    token = await run_in_threadpool(_start_session, db, request, user)
    return {
        "success": True,
        "message": "Google login successful",
        "token": token,
        "user": _user_summary(user),
    }


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
) -> RedirectResponse:
    if not code or not state:
        return RedirectResponse(f"{DASHBOARD_PATH}?error=missing_params", status_code=status.HTTP_302_FOUND)
    try:
        await google_oauth.exchange_authorization_code(db, code, state)
    except AppError as exc:
        logger.bind(tag="calendar.oauth").warning("calendar connect failed", error=exc.message)
        return RedirectResponse(f"{DASHBOARD_PATH}?error=oauth_failed", status_code=status.HTTP_302_FOUND)
    return RedirectResponse(f"{DASHBOARD_PATH}?calendar=connected", status_code=status.HTTP_302_FOUND)


@router.get("/verify")
def verify(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
):
    if credentials is None:
        return _invalid("No token provided")
    try:
        claims = verify_token(credentials.credentials)
    except AuthenticationError as exc:
        return _invalid(exc.message)
    user = user_store.find_by_id(db, claims.user_id)
    if user is None:
        return _invalid("User not found")
    return {"success": True, "valid": True, "user": _user_summary(user)}


def _invalid(message: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "valid": False, "error": message},
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


@router.post("/logout")
def logout(
    claims: TokenClaims = Depends(get_current_claims),
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    session_store.revoke_by_raw_token(db, token)
    logger.bind(tag="auth.logout").info("logged out", user_id=claims.user_id)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = user_store.find_by_id(db, claims.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return {"success": True, "user": UserProfile.model_validate(user).model_dump(mode="json")}
