from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class MeetingCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=500)
    meeting_date: Optional[datetime] = None
    host_email: Optional[str] = None
    attendees: Optional[List[Any]] = None
    transcript: Optional[str] = None


class MeetingApprove(BaseModel):
    suggestions: Optional[str] = None


class MeetingReject(BaseModel):
    reason: Optional[str] = None


class MeetingListItem(BaseModel):
    id: str
    title: str
    meeting_date: Optional[datetime] = None
    status: str
    host_email: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MeetingRead(MeetingListItem):
    transcript: Optional[str] = None
    summary: Optional[str] = None
    action_items: Optional[Any] = None
    attendees: Optional[Any] = None
    google_event_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    updated_at: datetime


class MeetingEndEvent(BaseModel):
    meeting_id: Optional[str] = None
    title: Optional[str] = None
    host_email: Optional[str] = None
    attendees: Optional[List[Any]] = None
    transcript: Optional[str] = None
    user_id: Optional[str] = None


class AutomationCallback(BaseModel):
    meeting_id: Optional[str] = None
    action: Optional[str] = None
    summary: Optional[str] = None
    action_items: Optional[List[Any]] = None


class CalendarEventCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    attendees: Optional[List[str]] = None
    addMeetLink: bool = False
    meetingId: Optional[str] = None
