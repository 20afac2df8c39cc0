from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from secretary.api.deps import get_current_claims
from secretary.config import settings
from secretary.errors import NotFoundError
from secretary.security import TokenClaims
from secretary.services import fireflies
from secretary.services.fireflies import FirefliesError

router = APIRouter(tags=["fireflies"])


@router.get("/transcripts")
async def list_transcripts(
    limit: int = Query(default=10, ge=1, le=50),
    claims: TokenClaims = Depends(get_current_claims),
) -> Dict[str, Any]:
    transcripts = await fireflies.recent_transcripts(limit)
    return {"success": True, "transcripts": transcripts, "count": len(transcripts)}


@router.get("/transcript/{transcript_id}")
async def get_transcript(transcript_id: str, claims: TokenClaims = Depends(get_current_claims)) -> Dict[str, Any]:
    transcript = await fireflies.transcript_detail(transcript_id)
    if transcript is None:
        raise NotFoundError("Transcript not found")
    return {"success": True, "transcript": transcript}


@router.get("/status")
async def fireflies_status(claims: TokenClaims = Depends(get_current_claims)) -> Dict[str, Any]:
    if not settings.fireflies_api_key:
        return {"success": True, "connected": False, "message": "Fireflies API key not configured"}
    try:
        user = await fireflies.current_user()
    except FirefliesError as exc:
        return {"success": True, "connected": False, "message": exc.message}
    return {"success": True, "connected": True, "user": user}
