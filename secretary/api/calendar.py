from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from secretary.api.deps import get_current_claims
from secretary.db import get_db
from secretary.errors import CalendarNotConnected, ValidationError
from secretary.models.meeting import Meeting
from secretary.models.user import User
from secretary.schemas.meeting import CalendarEventCreate
from secretary.security import TokenClaims
from secretary.services import google_calendar, google_oauth
from secretary.store import users as user_store

router = APIRouter(tags=["calendar"])


def _connected_user(db: Session, claims: TokenClaims) -> User:
    user = user_store.find_by_id(db, claims.user_id)
    if not user_store.is_calendar_connected(user):
        raise CalendarNotConnected()
    return user


def _set_meeting_event(db: Session, user_id: str, meeting_id: str, event_id: str) -> None:
    db.query(Meeting).filter(Meeting.id == meeting_id, Meeting.user_id == user_id).update(
        {Meeting.google_event_id: event_id}, synchronize_session=False
    )
    db.commit()


def _clear_meeting_event(db: Session, user_id: str, event_id: str) -> None:
    db.query(Meeting).filter(Meeting.google_event_id == event_id, Meeting.user_id == user_id).update(
        {Meeting.google_event_id: None}, synchronize_session=False
    )
    db.commit()


@router.get("/auth-url")
async def auth_url(claims: TokenClaims = Depends(get_current_claims)) -> Dict[str, Any]:
    url = await google_oauth.build_authorization_url(claims.user_id)
    return {"success": True, "authUrl": url}


@router.get("/status")
def calendar_status(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = user_store.find_by_id(db, claims.user_id)
    return {"success": True, "connected": user_store.is_calendar_connected(user)}


@router.post("/disconnect")
def disconnect(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = user_store.find_by_id(db, claims.user_id)
    if user is not None:
        user_store.clear_oauth_tokens(db, user)
    return {"success": True, "message": "Calendar disconnected successfully"}


@router.get("/events")
async def list_events(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    user = await run_in_threadpool(_connected_user, db, claims)
    token = await google_oauth.get_valid_access_token(db, user)
    events = await google_calendar.list_upcoming_events(token)
    return {"success": True, "events": events, "count": len(events)}


@router.post("/create-event")
async def create_event(
    body: CalendarEventCreate,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not body.title or body.startTime is None or body.endTime is None:
        raise ValidationError("Title, startTime, and endTime are required")
    user = await run_in_threadpool(_connected_user, db, claims)
    token = await google_oauth.get_valid_access_token(db, user)
    event_body = google_calendar.build_event_body(
        body.title,
        body.startTime,
        body.endTime,
        description=body.description or "",
        attendees=body.attendees,
        add_meet_link=body.addMeetLink,
    )
    created = await google_calendar.create_event(token, event_body)

    if body.meetingId:
        await run_in_threadpool(_set_meeting_event, db, user.id, body.meetingId, created["id"])
    return {"success": True, "event": created}


@router.delete("/event/{event_id}")
async def delete_event(
    event_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    user = await run_in_threadpool(_connected_user, db, claims)
    token = await google_oauth.get_valid_access_token(db, user)
    await google_calendar.delete_event(token, event_id)
    await run_in_threadpool(_clear_meeting_event, db, user.id, event_id)
    return {"success": True, "message": "Event deleted successfully"}
