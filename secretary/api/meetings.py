from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from secretary.api.deps import get_current_claims
from secretary.db import get_db
from secretary.errors import ConflictError, NotFoundError, ValidationError
from secretary.models._common import utcnow
from secretary.models.meeting import Meeting, MeetingStatus
from secretary.schemas.meeting import MeetingApprove, MeetingCreate, MeetingListItem, MeetingRead, MeetingReject
from secretary.security import TokenClaims

router = APIRouter(tags=["meetings"])

LIST_LIMIT = 50
SUGGESTIONS_SEPARATOR = "\n\n---\nHost Suggestions: "
CLOSED_STATUSES = (MeetingStatus.SENT.value, MeetingStatus.REJECTED.value)


def _get_owned_meeting(db: Session, meeting_id: str, user_id: str) -> Meeting:
    meeting = (
        db.query(Meeting)
        .filter(Meeting.id == meeting_id, Meeting.user_id == user_id)
        .first()
    )
    if not meeting:
        raise NotFoundError("Meeting not found")
    return meeting


def _require_open(meeting: Meeting) -> None:
    if meeting.status in CLOSED_STATUSES:
        raise ConflictError(f"Meeting is already {meeting.status}")


@router.get("")
def list_meetings(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    meetings = (
        db.query(Meeting)
        .filter(Meeting.user_id == claims.user_id)
        .order_by(Meeting.created_at.desc())
        .limit(LIST_LIMIT)
        .all()
    )
    return {
        "success": True,
        "meetings": [MeetingListItem.model_validate(m).model_dump(mode="json") for m in meetings],
    }


@router.get("/stats")
def meeting_stats(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    rows = (
        db.query(Meeting.status, func.count(Meeting.id))
        .filter(Meeting.user_id == claims.user_id)
        .group_by(Meeting.status)
        .all()
    )
    counts = {row_status: int(count) for row_status, count in rows}
    return {
        "success": True,
        "stats": {
            "total_meetings": sum(counts.values()),
            "pending": counts.get(MeetingStatus.PENDING.value, 0),
            "approved": counts.get(MeetingStatus.APPROVED.value, 0),
            "sent": counts.get(MeetingStatus.SENT.value, 0),
        },
    }


@router.get("/{meeting_id}")
def get_meeting(meeting_id: str, claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> Dict[str, Any]:
    meeting = _get_owned_meeting(db, meeting_id, claims.user_id)
    return {"success": True, "meeting": MeetingRead.model_validate(meeting).model_dump(mode="json")}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: MeetingCreate,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not payload.title:
        raise ValidationError("Title is required")
    meeting = Meeting(
        user_id=claims.user_id,
        title=payload.title,
        meeting_date=payload.meeting_date or utcnow(),
        host_email=payload.host_email or claims.email,
        attendees=payload.attendees,
        transcript=payload.transcript,
        status=MeetingStatus.PENDING.value,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    return {
        "success": True,
        "message": "Meeting created",
        "meeting": {
            "id": meeting.id,
            "title": meeting.title,
            "status": meeting.status,
            "created_at": meeting.created_at.isoformat(),
        },
    }


@router.post("/{meeting_id}/approve")
def approve_meeting(
    meeting_id: str,
    payload: MeetingApprove,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    meeting = _get_owned_meeting(db, meeting_id, claims.user_id)
    _require_open(meeting)
    if payload.suggestions:
        meeting.summary = f"{meeting.summary or ''}{SUGGESTIONS_SEPARATOR}{payload.suggestions}"
    meeting.status = MeetingStatus.APPROVED.value
    meeting.approved_at = utcnow()
    db.commit()
    logger.bind(tag="meetings").info("meeting approved", meeting_id=meeting.id)
    return {"success": True, "message": "Meeting approved", "status": meeting.status}


@router.post("/{meeting_id}/reject")
def reject_meeting(
    meeting_id: str,
    payload: MeetingReject,
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    meeting = _get_owned_meeting(db, meeting_id, claims.user_id)
    _require_open(meeting)
    meeting.status = MeetingStatus.REJECTED.value
    db.commit()
    logger.bind(tag="meetings").info("meeting rejected", meeting_id=meeting.id, reason=payload.reason)
    return {"success": True, "message": "Meeting rejected", "status": meeting.status}
