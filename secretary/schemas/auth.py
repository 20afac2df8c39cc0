from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    token: Optional[str] = None
    mode: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    email: str
    name: str
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    email_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True
