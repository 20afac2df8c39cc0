from __future__ import annotations

import hmac
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

from secretary.config import settings
from secretary.db import get_db
from secretary.errors import AuthenticationError, ExternalServiceError, NotFoundError, ValidationError
from secretary.models._common import utcnow
from secretary.models.meeting import Meeting, MeetingStatus
from secretary.schemas.meeting import AutomationCallback, MeetingEndEvent
from secretary.services.automation import forward_meeting_end

router = APIRouter(tags=["webhook"])


@router.post("/meeting-end")
async def meeting_end(body: MeetingEndEvent):
    if not body.meeting_id:
        raise ValidationError("meeting_id is required")
    try:
        reply = await forward_meeting_end(body.model_dump(exclude={"user_id"}))
    except ExternalServiceError as exc:
        return JSONResponse(
            {"success": True, "message": "Webhook received but n8n forward failed", "error": exc.message},
            status_code=202,
        )
    return {"success": True, "message": "Webhook forwarded to n8n", "n8n_response": reply}


def _check_callback_secret(provided: Optional[str]) -> None:
    expected = settings.automation_callback_secret
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise AuthenticationError("Invalid automation secret")


def _apply_summary_ready(meeting: Meeting, body: AutomationCallback) -> None:
    meeting.summary = body.summary
    meeting.action_items = body.action_items or []
    meeting.status = MeetingStatus.PENDING_APPROVAL.value


def _apply_host_approved(meeting: Meeting, body: AutomationCallback) -> None:
    meeting.status = MeetingStatus.APPROVED.value
    meeting.approved_at = utcnow()


def _apply_emails_sent(meeting: Meeting, body: AutomationCallback) -> None:
    meeting.status = MeetingStatus.SENT.value


def _apply_host_rejected(meeting: Meeting, body: AutomationCallback) -> None:
    meeting.status = MeetingStatus.REJECTED.value


CALLBACK_ACTIONS = {
    "summary_ready": _apply_summary_ready,
    "host_approved": _apply_host_approved,
    "emails_sent": _apply_emails_sent,
    "host_rejected": _apply_host_rejected,
}


@router.post("/n8n-callback")
def automation_callback(
    body: AutomationCallback,
    x_automation_secret: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    _check_callback_secret(x_automation_secret)
    if not body.meeting_id or not body.action:
        raise ValidationError("meeting_id and action are required")
    apply = CALLBACK_ACTIONS.get(body.action)
    if apply is None:
        raise ValidationError("Unknown action")

    meeting = db.get(Meeting, body.meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting not found")
    apply(meeting, body)
    db.commit()
    logger.bind(tag="webhook.callback").info("meeting updated", meeting_id=meeting.id, action=body.action)
    return {"success": True, "message": "Callback processed", "action": body.action}
