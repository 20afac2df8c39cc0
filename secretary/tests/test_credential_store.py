from datetime import datetime, timedelta, timezone

import pytest

from secretary.errors import ConflictError, ValidationError
from secretary.models.session import UserSession
from secretary.models.user import User
from secretary.store import sessions as session_store
from secretary.store import users as user_store
from secretary.store.linking import ExternalIdentity


@pytest.mark.asyncio
async def test_create_local_account_hides_hash(db):
    profile = await user_store.create_local_account(db, "Eve@Example.com", "Eve", "secret1")
    assert set(profile) == {"id", "email", "name", "created_at"}
    assert profile["email"] == "eve@example.com"
    user = user_store.find_by_email(db, "EVE@example.com")
    assert user is not None and user.id == profile["id"]
    assert await user_store.verify_password(user, "secret1")
    assert not await user_store.verify_password(user, "secret2")


@pytest.mark.asyncio
async def test_create_local_account_rejects_duplicates_and_short_passwords(db):
    await user_store.create_local_account(db, "eve@example.com", "Eve", "secret1")
    with pytest.raises(ConflictError):
        await user_store.create_local_account(db, "EVE@EXAMPLE.COM", "Eve", "secret1")
    with pytest.raises(ValidationError):
        await user_store.create_local_account(db, "frank@example.com", "Frank", "short")


def test_unique_constraint_backs_duplicate_check(db):
    db.add(User(email="gina@example.com", name="Gina", password_hash="x"))
    db.commit()
    with pytest.raises(ConflictError):
        user_store._insert_user(db, User(email="gina@example.com", name="Gina 2", password_hash="y"))


def test_find_helpers_return_none_when_absent(db):
    assert user_store.find_by_email(db, "missing@example.com") is None
    assert user_store.find_by_id(db, "missing") is None


@pytest.mark.asyncio
async def test_link_keeps_existing_google_id_and_picture(db):
    user = User(
        email="hank@example.com",
        name="Hank",
        password_hash="x",
        google_id="original-sub",
        profile_picture="https://example.com/old.png",
    )
    db.add(user)
    db.commit()
    linked = await user_store.link_external_identity(
        db, ExternalIdentity(email="Hank@example.com", name="Hank G", subject="other-sub", picture=None)
    )
    assert linked.id == user.id
    assert linked.google_id == "original-sub"
    assert linked.profile_picture == "https://example.com/old.png"
    assert linked.email_verified is True
    assert linked.last_login is not None


def test_store_oauth_tokens_keeps_refresh_token_when_absent(db):
    user = User(email="ivy@example.com", name="Ivy", password_hash="x", google_refresh_token="keep-me")
    db.add(user)
    db.commit()
    expiry = datetime.now(tz=timezone.utc) + timedelta(hours=1)
    user_store.store_oauth_tokens(db, user, "access-2", None, expiry)
    assert user.google_access_token == "access-2"
    assert user.google_refresh_token == "keep-me"
    assert user_store.is_calendar_connected(user)

    user_store.clear_oauth_tokens(db, user)
    db.refresh(user)
    assert user.google_access_token is None
    assert user.google_refresh_token is None
    assert user.token_expires_at is None
    assert not user_store.is_calendar_connected(user)


def test_session_registry_stores_hash_and_revokes_idempotently(db):
    user = User(email="jack@example.com", name="Jack", password_hash="x")
    db.add(user)
    db.commit()
    record = session_store.record_session(db, user.id, "raw-token", user_agent=None, ip_address="10.0.0.1")
    assert record.token_hash == session_store.hash_token("raw-token")
    assert record.token_hash != "raw-token"
    assert record.user_agent == "unknown"
    assert session_store.is_session_active(db, "raw-token")

    assert session_store.revoke_by_raw_token(db, "raw-token") == 1
    assert session_store.revoke_by_raw_token(db, "raw-token") == 0
    assert not session_store.is_session_active(db, "raw-token")


def test_deleting_user_cascades_sessions(db):
    user = User(email="kim@example.com", name="Kim", password_hash="x")
    db.add(user)
    db.commit()
    session_store.record_session(db, user.id, "t1")
    db.delete(user)
    db.commit()
    assert db.query(UserSession).count() == 0
