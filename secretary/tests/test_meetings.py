import httpx
import pytest
import respx

from secretary.config import settings
from secretary.models.meeting import Meeting


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token(register):
    return register()["token"]


def _create(client, token, **payload):
    payload.setdefault("title", "Weekly sync")
    resp = client.post("/api/meetings", json=payload, headers=bearer(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["meeting"]["id"]


def test_create_and_read_meeting(client, token):
    meeting_id = _create(client, token, attendees=["bob@example.com"], transcript="hello")
    resp = client.get(f"/api/meetings/{meeting_id}", headers=bearer(token))
    assert resp.status_code == 200
    meeting = resp.json()["meeting"]
    assert meeting["status"] == "pending"
    assert meeting["host_email"] == "alice@example.com"
    assert meeting["attendees"] == ["bob@example.com"]

    listing = client.get("/api/meetings", headers=bearer(token)).json()
    assert [m["id"] for m in listing["meetings"]] == [meeting_id]


def test_create_requires_title(client, token):
    resp = client.post("/api/meetings", json={}, headers=bearer(token))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Title is required"


def test_meetings_are_private_to_owner(client, token, register):
    meeting_id = _create(client, token)
    other = register(email="mallory@example.com", name="Mallory")["token"]
    assert client.get(f"/api/meetings/{meeting_id}", headers=bearer(other)).status_code == 404
    assert client.get("/api/meetings", headers=bearer(other)).json()["meetings"] == []


def test_approve_appends_suggestions(client, token, db):
    meeting_id = _create(client, token)
    client.post(
        "/api/webhook/n8n-callback",
        json={"meeting_id": meeting_id, "action": "summary_ready", "summary": "Notes", "action_items": ["a"]},
    )
    resp = client.post(f"/api/meetings/{meeting_id}/approve", json={"suggestions": "Add budget"}, headers=bearer(token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    meeting = db.get(Meeting, meeting_id)
    assert meeting.summary == "Notes\n\n---\nHost Suggestions: Add budget"
    assert meeting.approved_at is not None


def test_reject_blocked_once_sent(client, token):
    meeting_id = _create(client, token)
    resp = client.post(f"/api/meetings/{meeting_id}/reject", json={"reason": "wrong"}, headers=bearer(token))
    assert resp.json()["status"] == "rejected"

    sent_id = _create(client, token)
    client.post("/api/webhook/n8n-callback", json={"meeting_id": sent_id, "action": "emails_sent"})
    assert client.post(f"/api/meetings/{sent_id}/reject", json={}, headers=bearer(token)).status_code == 409


def test_stats_count_by_status(client, token):
    first = _create(client, token)
    _create(client, token)
    third = _create(client, token)
    client.post("/api/webhook/n8n-callback", json={"meeting_id": first, "action": "host_approved"})
    client.post("/api/webhook/n8n-callback", json={"meeting_id": third, "action": "emails_sent"})
    stats = client.get("/api/meetings/stats", headers=bearer(token)).json()["stats"]
    assert stats == {"total_meetings": 3, "pending": 1, "approved": 1, "sent": 1}


def test_callback_lifecycle(client, token, db):
    meeting_id = _create(client, token)
    for action, expected in [
        ("summary_ready", "pending_approval"),
        ("host_approved", "approved"),
        ("emails_sent", "sent"),
    ]:
        resp = client.post("/api/webhook/n8n-callback", json={"meeting_id": meeting_id, "action": action})
        assert resp.status_code == 200
        db.expire_all()
        assert db.get(Meeting, meeting_id).status == expected


def test_callback_validation(client, token):
    meeting_id = _create(client, token)
    assert client.post("/api/webhook/n8n-callback", json={"action": "emails_sent"}).status_code == 400
    resp = client.post("/api/webhook/n8n-callback", json={"meeting_id": meeting_id, "action": "explode"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Unknown action"
    missing = client.post("/api/webhook/n8n-callback", json={"meeting_id": "nope", "action": "emails_sent"})
    assert missing.status_code == 404


def test_callback_secret_enforced_when_configured(client, token, monkeypatch):
    monkeypatch.setattr(settings, "automation_callback_secret", "s3cret")
    meeting_id = _create(client, token)
    body = {"meeting_id": meeting_id, "action": "emails_sent"}
    assert client.post("/api/webhook/n8n-callback", json=body).status_code == 401
    ok = client.post("/api/webhook/n8n-callback", json=body, headers={"X-Automation-Secret": "s3cret"})
    assert ok.status_code == 200


def test_meeting_end_forwards_with_callback_url(client):
    with respx.mock(assert_all_called=False) as mock:
        route = mock.post(settings.n8n_webhook_url).mock(return_value=httpx.Response(200, json={"ok": True}))
        resp = client.post("/api/webhook/meeting-end", json={"meeting_id": "m-1", "title": "Sync"})
    assert resp.status_code == 200
    assert resp.json()["n8n_response"] == {"ok": True}
    sent = route.calls.last.request
    assert b"/api/webhook/n8n-callback" in sent.content


def test_meeting_end_relay_failure_is_accepted(client):
    with respx.mock(assert_all_called=False) as mock:
        mock.post(settings.n8n_webhook_url).mock(side_effect=httpx.ConnectError("down"))
        resp = client.post("/api/webhook/meeting-end", json={"meeting_id": "m-1"})
    assert resp.status_code == 202
    assert resp.json()["success"] is True


def test_meeting_end_requires_id(client):
    assert client.post("/api/webhook/meeting-end", json={}).status_code == 400


def test_closed_meetings_cannot_be_approved_or_rejected(client, token):
    rejected_id = _create(client, token)
    client.post(f"/api/meetings/{rejected_id}/reject", json={}, headers=bearer(token))
    resp = client.post(f"/api/meetings/{rejected_id}/approve", json={"suggestions": "late"}, headers=bearer(token))
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "error": "Meeting is already rejected"}
    assert client.post(f"/api/meetings/{rejected_id}/reject", json={}, headers=bearer(token)).status_code == 409

    sent_id = _create(client, token)
    client.post("/api/webhook/n8n-callback", json={"meeting_id": sent_id, "action": "emails_sent"})
    assert client.post(f"/api/meetings/{sent_id}/approve", json={}, headers=bearer(token)).status_code == 409
    detail = client.get(f"/api/meetings/{sent_id}", headers=bearer(token)).json()["meeting"]
    assert detail["status"] == "sent"
