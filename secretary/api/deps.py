from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from secretary.config import settings
from secretary.db import get_db
from secretary.errors import AuthenticationError
from secretary.security import TokenClaims, verify_token
from secretary.store import sessions as session_store

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return credentials.credentials


def get_current_claims(
    request: Request,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> TokenClaims:
    """Resolve the bearer token to its embedded claims.

    The user row is not re-read: claims are trusted until the token expires.
    With strict revocation enabled the session registry must still hold a
    live record for the token, so logout takes effect immediately.
    """
    claims = verify_token(token)
    if settings.strict_session_revocation and not session_store.is_session_active(db, token):
        raise AuthenticationError("Invalid or expired token")
    request.state.claims = claims
    return claims


def client_ip(request: Request) -> str:
    # socket peer only; proxy headers are trusted via uvicorn --proxy-headers
    return request.client.host if request.client else "unknown"
