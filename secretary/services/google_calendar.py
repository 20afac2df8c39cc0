from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from dateutil.relativedelta import relativedelta
from loguru import logger

from ..config import settings
from ..errors import ExternalServiceError, ReauthorizationRequired

GOOGLE_CALENDAR_BASE = "https://www.googleapis.com/calendar/v3"
MAX_LISTED_EVENTS = 50


async def _calendar_request(
    method: str,
    path: str,
    token: str,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{GOOGLE_CALENDAR_BASE}{path}"
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_sec) as client:
            resp = await client.request(method, url, headers=headers, params=params, json=json_body)
    except httpx.HTTPError as exc:
        logger.bind(tag="calendar.api").warning("calendar request failed", error=str(exc))
        raise ExternalServiceError("Google Calendar request failed") from exc
    if resp.status_code == 401:
        raise ReauthorizationRequired()
    if resp.status_code >= 400:
        logger.bind(tag="calendar.api").warning("calendar API error", status=resp.status_code, body=resp.text[:500])
        raise ExternalServiceError("Google Calendar request failed")
    if resp.status_code == 204 or not resp.content:
        return {}
    return resp.json()


def _events_path() -> str:
    return f"/calendars/{settings.google_calendar_id}/events"


def _meet_link(event: Dict[str, Any]) -> Optional[str]:
    if event.get("hangoutLink"):
        return event["hangoutLink"]
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    if entry_points:
        return entry_points[0].get("uri")
    return None


def format_event(event: Dict[str, Any]) -> Dict[str, Any]:
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id"),
        "title": event.get("summary") or "No title",
        "description": event.get("description") or "",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "location": event.get("location") or "",
        "attendees": [a.get("email") for a in event.get("attendees") or [] if a.get("email")],
        "meetLink": _meet_link(event),
        "status": event.get("status"),
    }


async def list_upcoming_events(token: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    start = now or datetime.now(tz=timezone.utc)
    params = {
        "timeMin": start.isoformat(),
        "timeMax": (start + relativedelta(months=1)).isoformat(),
        "maxResults": MAX_LISTED_EVENTS,
        "singleEvents": "true",
        "orderBy": "startTime",
    }
    data = await _calendar_request("GET", _events_path(), token, params=params)
    return [format_event(item) for item in data.get("items") or []]


def build_event_body(
    title: str,
    start: datetime,
    end: datetime,
    description: str = "",
    attendees: Optional[List[str]] = None,
    add_meet_link: bool = False,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "summary": title,
        "description": description or "",
        "start": {"dateTime": start.isoformat(), "timeZone": settings.google_calendar_timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": settings.google_calendar_timezone},
        "attendees": [{"email": email} for email in attendees or []],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 30},
            ],
        },
    }
    if add_meet_link:
        body["conferenceData"] = {
            "createRequest": {
                "requestId": f"esec-{int(time.time() * 1000)}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }
    return body


async def create_event(token: str, body: Dict[str, Any]) -> Dict[str, Any]:
    params = {
        "conferenceDataVersion": 1 if "conferenceData" in body else 0,
        "sendUpdates": "all",
    }
    created = await _calendar_request("POST", _events_path(), token, params=params, json_body=body)
    logger.bind(tag="calendar.api").info("calendar event created", event_id=created.get("id"))
    return {
        "id": created.get("id"),
        "title": created.get("summary"),
        "start": (created.get("start") or {}).get("dateTime"),
        "end": (created.get("end") or {}).get("dateTime"),
        "meetLink": _meet_link(created),
        "htmlLink": created.get("htmlLink"),
    }


async def delete_event(token: str, event_id: str) -> None:
    await _calendar_request("DELETE", f"{_events_path()}/{event_id}", token)
