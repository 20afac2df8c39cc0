import httpx
import pytest
import respx

from secretary.services.fireflies import FIREFLIES_GRAPHQL_URL, format_duration


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token(register):
    return register()["token"]


@pytest.mark.parametrize(
    "minutes, expected",
    [(None, "Unknown"), (0, "Unknown"), (45, "45m"), (60, "1h"), (90, "1h 30m"), (125, "2h 5m")],
)
def test_format_duration(minutes, expected):
    assert format_duration(minutes) == expected


def test_recent_transcripts_are_formatted(client, token):
    payload = {
        "data": {
            "transcripts": [
                {
                    "id": "t-1",
                    "title": None,
                    "duration": 75,
                    "summary": {"overview": "Talked", "action_items": ["ship"], "keywords": ["q4"]},
                    "sentences": [{"text": "hi", "speaker_name": "A"}, {"text": "yo", "speaker_name": "B"}],
                }
            ]
        }
    }
    with respx.mock(assert_all_called=False) as mock:
        route = mock.post(FIREFLIES_GRAPHQL_URL).mock(return_value=httpx.Response(200, json=payload))
        resp = client.get("/api/fireflies/transcripts", params={"limit": 5}, headers=bearer(token))
    assert resp.status_code == 200
    item = resp.json()["transcripts"][0]
    assert item["title"] == "Untitled Meeting"
    assert item["durationFormatted"] == "1h 15m"
    assert item["sentenceCount"] == 2
    assert item["actionItems"] == ["ship"]
    assert route.calls.last.request.headers["Authorization"] == "Bearer ff-test-key"


def test_transcript_detail_not_found(client, token):
    with respx.mock(assert_all_called=False) as mock:
        mock.post(FIREFLIES_GRAPHQL_URL).mock(return_value=httpx.Response(200, json={"data": {"transcript": None}}))
        resp = client.get("/api/fireflies/transcript/missing", headers=bearer(token))
    assert resp.status_code == 404


def test_graphql_errors_surface_as_server_error(client, token):
    with respx.mock(assert_all_called=False) as mock:
        mock.post(FIREFLIES_GRAPHQL_URL).mock(
            return_value=httpx.Response(200, json={"errors": [{"message": "quota exceeded"}]})
        )
        resp = client.get("/api/fireflies/transcripts", headers=bearer(token))
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "quota exceeded"}


def test_status_reports_disconnected_on_error(client, token):
    with respx.mock(assert_all_called=False) as mock:
        mock.post(FIREFLIES_GRAPHQL_URL).mock(side_effect=httpx.ConnectError("down"))
        resp = client.get("/api/fireflies/status", headers=bearer(token))
    assert resp.status_code == 200
    assert resp.json()["connected"] is False


def test_transcripts_require_auth(client):
    assert client.get("/api/fireflies/transcripts").status_code == 401
