from .meeting import Meeting, MeetingStatus
from .session import UserSession
from .user import User

__all__ = ["Meeting", "MeetingStatus", "User", "UserSession"]
