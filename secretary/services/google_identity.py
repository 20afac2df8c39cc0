from __future__ import annotations

import httpx
from loguru import logger

from ..config import settings
from ..errors import AuthenticationError, ExternalServiceError
from ..store.linking import ExternalIdentity

GOOGLE_TOKENINFO_ENDPOINT = "https://oauth2.googleapis.com/tokeninfo"


async def verify_google_id_token(id_token: str) -> ExternalIdentity:
    """Resolve a Google Sign-In ID token to a verified identity."""
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_sec) as client:
            resp = await client.get(GOOGLE_TOKENINFO_ENDPOINT, params={"id_token": id_token})
    except httpx.HTTPError as exc:
        logger.bind(tag="auth.google").warning("tokeninfo request failed", error=str(exc))
        raise ExternalServiceError("Google verification is unavailable") from exc

    try:
        data = resp.json()
    except ValueError:
        data = {}
    if resp.status_code >= 400 or not isinstance(data, dict) or data.get("error") or not data.get("email"):
        logger.bind(tag="auth.google").info("google token rejected", status=resp.status_code)
        raise AuthenticationError("Invalid Google token")
    if settings.google_client_id and data.get("aud") != settings.google_client_id:
        logger.bind(tag="auth.google").info("google token audience mismatch")
        raise AuthenticationError("Invalid Google token")

    email = data["email"]
    return ExternalIdentity(
        email=email,
        name=data.get("name") or email.split("@")[0],
        subject=data.get("sub") or "",
        picture=data.get("picture"),
    )
