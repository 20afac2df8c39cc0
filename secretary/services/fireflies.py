"""Fireflies.ai GraphQL client and transcript formatting."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..config import settings
from ..errors import ExternalServiceError

FIREFLIES_GRAPHQL_URL = "https://api.fireflies.ai/graphql"

TRANSCRIPTS_QUERY = """
    query RecentTranscripts($limit: Int) {
        transcripts(limit: $limit) {
            id
            title
            date
            duration
            transcript_url
            audio_url
            video_url
            participants
            summary { overview action_items keywords }
            sentences { text speaker_name }
            meeting_attendees { displayName email name }
        }
    }
"""

TRANSCRIPT_DETAIL_QUERY = """
    query TranscriptDetail($id: String!) {
        transcript(id: $id) {
            id
            title
            date
            duration
            transcript_url
            audio_url
            video_url
            participants
            summary { overview action_items keywords outline shorthand_bullet }
            sentences { text speaker_name start_time end_time }
            meeting_attendees { displayName email name }
        }
    }
"""

USER_QUERY = "{ user { email name } }"


class FirefliesError(ExternalServiceError):
    default_message = "Fireflies API error"


def format_duration(minutes: Optional[int]) -> str:
    if not minutes:
        return "Unknown"
    minutes = int(minutes)
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if mins else f"{hours}h"


async def fireflies_query(query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if not settings.fireflies_api_key:
        raise FirefliesError("Fireflies API key not configured")
    headers = {"Authorization": f"Bearer {settings.fireflies_api_key}"}
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_sec) as client:
            resp = await client.post(
                FIREFLIES_GRAPHQL_URL,
                headers=headers,
                json={"query": query, "variables": variables or {}},
            )
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.bind(tag="fireflies").warning("fireflies request failed", error=str(exc))
        raise FirefliesError() from exc
    errors = data.get("errors") if isinstance(data, dict) else None
    if errors:
        logger.bind(tag="fireflies").warning("fireflies API errors", errors=errors)
        raise FirefliesError(errors[0].get("message") or "Fireflies API error")
    return data.get("data") or {}


def _summary(t: Dict[str, Any]) -> Dict[str, Any]:
    return t.get("summary") or {}


def format_transcript_item(t: Dict[str, Any]) -> Dict[str, Any]:
    summary = _summary(t)
    return {
        "id": t.get("id"),
        "title": t.get("title") or "Untitled Meeting",
        "date": t.get("date"),
        "duration": t.get("duration"),
        "durationFormatted": format_duration(t.get("duration")),
        "transcriptUrl": t.get("transcript_url"),
        "audioUrl": t.get("audio_url"),
        "videoUrl": t.get("video_url"),
        "participants": t.get("participants") or [],
        "attendees": t.get("meeting_attendees") or [],
        "summary": summary.get("overview"),
        "actionItems": summary.get("action_items") or [],
        "keywords": summary.get("keywords") or [],
        "sentenceCount": len(t.get("sentences") or []),
    }


def format_transcript_detail(t: Dict[str, Any]) -> Dict[str, Any]:
    summary = _summary(t)
    return {
        "id": t.get("id"),
        "title": t.get("title") or "Untitled Meeting",
        "date": t.get("date"),
        "duration": t.get("duration"),
        "durationFormatted": format_duration(t.get("duration")),
        "transcriptUrl": t.get("transcript_url"),
        "audioUrl": t.get("audio_url"),
        "videoUrl": t.get("video_url"),
        "participants": t.get("participants") or [],
        "attendees": t.get("meeting_attendees") or [],
        "summary": {
            "overview": summary.get("overview") or "",
            "actionItems": summary.get("action_items") or [],
            "keywords": summary.get("keywords") or [],
            "outline": summary.get("outline") or "",
            "bullets": summary.get("shorthand_bullet") or "",
        },
        "sentences": [
            {
                "text": s.get("text"),
                "speaker": s.get("speaker_name"),
                "startTime": s.get("start_time"),
                "endTime": s.get("end_time"),
            }
            for s in t.get("sentences") or []
        ],
    }


async def recent_transcripts(limit: int = 10) -> List[Dict[str, Any]]:
    data = await fireflies_query(TRANSCRIPTS_QUERY, {"limit": limit})
    return [format_transcript_item(t) for t in data.get("transcripts") or []]


async def transcript_detail(transcript_id: str) -> Optional[Dict[str, Any]]:
    data = await fireflies_query(TRANSCRIPT_DETAIL_QUERY, {"id": transcript_id})
    transcript = data.get("transcript")
    return format_transcript_detail(transcript) if transcript else None


async def current_user() -> Dict[str, Any]:
    data = await fireflies_query(USER_QUERY)
    return data.get("user") or {}
