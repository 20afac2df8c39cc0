from datetime import datetime, timedelta, timezone

import jwt
import pytest

from secretary.errors import AuthenticationError
from secretary.security import (
    TokenClaims,
    decode_oauth_state,
    encode_oauth_state,
    issue_token,
    pwd_context,
    verify_password_hash,
    verify_token,
)
from secretary.store.sessions import hash_token

CLAIMS = TokenClaims(user_id="u-1", email="alice@example.com", name="Alice")


def test_issue_then_verify_returns_same_claims():
    assert verify_token(issue_token(CLAIMS)) == CLAIMS


def test_each_issued_token_is_distinct():
    assert issue_token(CLAIMS) != issue_token(CLAIMS)


def test_token_expires_after_seven_days():
    issued = datetime.now(tz=timezone.utc) - timedelta(days=7, seconds=1)
    with pytest.raises(AuthenticationError) as err:
        verify_token(issue_token(CLAIMS, now=issued))
    assert err.value.message == "Invalid or expired token"


def test_token_still_valid_just_before_expiry():
    issued = datetime.now(tz=timezone.utc) - timedelta(days=6, hours=23)
    assert verify_token(issue_token(CLAIMS, now=issued)) == CLAIMS


@pytest.mark.parametrize(
    "token",
    [
        "not-a-token",
        jwt.encode({"sub": "u-1", "exp": datetime.now(tz=timezone.utc) + timedelta(days=1)}, "other-secret", algorithm="HS256"),
    ],
)
def test_bad_tokens_share_one_error_message(token):
    with pytest.raises(AuthenticationError) as err:
        verify_token(token)
    assert err.value.message == "Invalid or expired token"


def test_tampered_payload_is_rejected():
    header, payload, signature = issue_token(CLAIMS).split(".")
    forged = jwt.encode({"sub": "u-2", "exp": datetime.now(tz=timezone.utc) + timedelta(days=1)}, "x").split(".")[1]
    with pytest.raises(AuthenticationError):
        verify_token(".".join([header, forged, signature]))


def test_oauth_state_round_trip_and_not_a_bearer_token():
    state = encode_oauth_state("u-1")
    assert decode_oauth_state(state) == "u-1"
    with pytest.raises(AuthenticationError):
        verify_token(state)
    with pytest.raises(AuthenticationError):
        decode_oauth_state(issue_token(CLAIMS))


def test_expired_oauth_state_is_rejected():
    state = encode_oauth_state("u-1", now=datetime.now(tz=timezone.utc) - timedelta(minutes=11))
    with pytest.raises(AuthenticationError):
        decode_oauth_state(state)


def test_password_hash_verification():
    hashed = pwd_context.hash("secret1")
    assert hashed != "secret1"
    assert verify_password_hash("secret1", hashed)
    assert not verify_password_hash("secret2", hashed)
    assert not verify_password_hash("secret1", "not-a-hash")
    assert not verify_password_hash("secret1", "")


def test_token_hash_is_sha256_hex():
    digest = hash_token("abc")
    assert len(digest) == 64
    assert digest == hash_token("abc")
    assert digest != hash_token("abd")
