"""Account-linking policy for password and Google sign-ins.

Accounts are keyed by normalized email, so the first verified sign-in for an
email owns the account. Each outcome is an explicit variant; the store applies
the plan, this module only decides it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..errors import ConflictError, NotFoundError
from ..models.user import User

MODE_LOGIN = "login"
MODE_SIGNUP = "signup"


@dataclass(frozen=True)
class ExternalIdentity:
    email: str
    name: str
    subject: str
    picture: Optional[str] = None


@dataclass(frozen=True)
class NewLocal:
    email: str
    name: str


@dataclass(frozen=True)
class NewExternal:
    identity: ExternalIdentity


@dataclass(frozen=True)
class MergeIntoExisting:
    user_id: str
    identity: ExternalIdentity


LinkPlan = Union[NewLocal, NewExternal, MergeIntoExisting]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def plan_registration(existing: Optional[User], email: str, name: str) -> NewLocal:
    if existing is not None:
        raise ConflictError("An account with this email already exists")
    return NewLocal(email=normalize_email(email), name=name.strip())


def plan_external_link(
    existing: Optional[User],
    identity: ExternalIdentity,
    mode: Optional[str] = None,
) -> Union[NewExternal, MergeIntoExisting]:
    if existing is not None:
        return MergeIntoExisting(user_id=existing.id, identity=identity)
    if mode == MODE_LOGIN:
        raise NotFoundError("No account found with this email. Please sign up first.")
    return NewExternal(identity=identity)
