from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app
from app.services.meeting_store import MeetingStore, clear_meeting_store_cache, create_meeting_store
from app.services.recall_api_client import RecallApiClient, RecallApiError

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEETINGS_STORE", "memory")
    monkeypatch.setenv("RECALL_API_KEY", "recall-test-key")
    monkeypatch.delenv("SHARED_SECRET", raising=False)
    monkeypatch.delenv("N8N_BOT_STATUS_WEBHOOK_URL", raising=False)
    get_settings.cache_clear()
    clear_meeting_store_cache()
    yield
    get_settings.cache_clear()
    clear_meeting_store_cache()


def _store() -> MeetingStore:
    settings = get_settings()
    return create_meeting_store(
        store_name=settings.meetings_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_collection_name=settings.mongodb_meetings_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


def _fake_create_bot(calls: list[dict[str, Any]], bot_id: str = "bot-1"):
    def fake_create_bot(self: RecallApiClient, payload: dict[str, Any]) -> dict[str, Any]:
        calls.append(payload)
        return {"id": bot_id, "status_changes": []}

    return fake_create_bot


def _bot_with_transcript(download_url: str | None, transcript_id: str | None = "tr-1") -> dict[str, Any]:
    transcript: dict[str, Any] = {"data": {"download_url": download_url} if download_url else {}}
    if transcript_id:
        transcript["id"] = transcript_id
    return {"id": "bot-1", "recordings": [{"id": "rec-1", "media_shortcuts": {"transcript": transcript}}]}


def test_join_meeting_creates_bot_and_stores_record(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(RecallApiClient, "create_bot", _fake_create_bot(calls))

    response = client.post(
        "/joinMeeting",
        json={"meetingId": "m1", "joinUrl": "https://teams.example/x"},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "meetingId": "m1", "recallBotId": "bot-1"}
    assert len(calls) == 1
    assert calls[0]["meeting_url"] == "https://teams.example/x"
    assert calls[0]["metadata"]["meetingId"] == "m1"
    assert calls[0]["metadata"]["subject"] == ""
    assert calls[0]["recording_config"]["transcript"]["provider"]["recallai_streaming"] == {
        "mode": "prioritize_low_latency",
        "language_code": "en",
    }
    assert "bot_name" not in calls[0]

    record = _store().find_by_meeting_id("m1")
    assert record is not None
    assert record["status"] == "join_requested"
    assert record["recallBotId"] == "bot-1"
    assert record["joinUrl"] == "https://teams.example/x"
    assert record["createdAt"]


def test_join_meeting_passes_optional_fields_into_metadata(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECALL_BOT_NAME", "Notetaker")
    get_settings.cache_clear()
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(RecallApiClient, "create_bot", _fake_create_bot(calls))

    response = client.post(
        "/joinMeeting",
        json={
            "meetingId": "m1",
            "joinUrl": "https://teams.example/x",
            "subject": "Weekly sync",
            "startTime": "2026-01-05T10:00:00Z",
            "endTime": "2026-01-05T11:00:00Z",
        },
    )

    assert response.status_code == 200
    assert calls[0]["metadata"] == {
        "meetingId": "m1",
        "subject": "Weekly sync",
        "startTime": "2026-01-05T10:00:00Z",
        "endTime": "2026-01-05T11:00:00Z",
    }
    assert calls[0]["bot_name"] == "Notetaker"
    record = _store().find_by_meeting_id("m1")
    assert record["subject"] == "Weekly sync"
    assert record["startTime"] == "2026-01-05T10:00:00Z"


def test_join_meeting_requires_meeting_id_and_join_url() -> None:
    response = client.post("/joinMeeting", json={"meetingId": "m1"})

    assert response.status_code == 400
    assert response.json() == {"error": "meetingId and joinUrl are required"}


def test_join_meeting_without_body_is_a_client_error() -> None:
    response = client.post("/joinMeeting")

    assert response.status_code == 400
    assert response.json()["error"] == "meetingId and joinUrl are required"


def test_join_meeting_surfaces_provider_error_details(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_create_bot(self: RecallApiClient, payload: dict[str, Any]) -> dict[str, Any]:
        raise RecallApiError(
            "Recall API HTTP 400",
            status_code=400,
            details={"meeting_url": ["Invalid meeting URL"]},
        )

    monkeypatch.setattr(RecallApiClient, "create_bot", failing_create_bot)

    response = client.post("/joinMeeting", json={"meetingId": "m1", "joinUrl": "bad"})

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to create Recall bot",
        "details": {"meeting_url": ["Invalid meeting URL"]},
    }
    assert _store().find_by_meeting_id("m1") is None


def test_join_meeting_keeps_first_bound_bot(monkeypatch: pytest.MonkeyPatch) -> None:
    _store().upsert_by_meeting_id("m1", {"recallBotId": "bot-original", "status": "left"})
    monkeypatch.setattr(RecallApiClient, "create_bot", _fake_create_bot([], bot_id="bot-new"))

    response = client.post("/joinMeeting", json={"meetingId": "m1", "joinUrl": "https://teams.example/x"})

    assert response.status_code == 200
    assert response.json()["recallBotId"] == "bot-new"
    record = _store().find_by_meeting_id("m1")
    assert record["recallBotId"] == "bot-original"
    assert record["status"] == "join_requested"


def test_shared_secret_is_enforced_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHARED_SECRET", "top-secret")
    get_settings.cache_clear()
    monkeypatch.setattr(RecallApiClient, "create_bot", _fake_create_bot([]))
    body = {"meetingId": "m1", "joinUrl": "https://teams.example/x"}

    missing = client.post("/joinMeeting", json=body)
    wrong = client.post("/joinMeeting", json=body, headers={"x-api-key": "nope"})
    accepted = client.post("/joinMeeting", json=body, headers={"x-api-key": "top-secret"})

    assert missing.status_code == 401
    assert missing.json() == {"error": "Unauthorized"}
    assert wrong.status_code == 401
    assert accepted.status_code == 200


@pytest.mark.parametrize("path", ["/joinPhone", "/getTranscript"])
def test_other_authenticated_routes_reject_missing_secret(
    monkeypatch: pytest.MonkeyPatch,
    path: str,
) -> None:
    monkeypatch.setenv("SHARED_SECRET", "top-secret")
    get_settings.cache_clear()

    response = client.post(path, json={"meetingId": "m1"})

    assert response.status_code == 401


def test_join_phone_validates_and_returns_not_implemented() -> None:
    missing = client.post("/joinPhone", json={"meetingId": "m1", "phoneNumber": "+15550100"})
    complete = client.post(
        "/joinPhone",
        json={"meetingId": "m1", "phoneNumber": "+15550100", "conferenceId": "123456"},
    )

    assert missing.status_code == 400
    assert missing.json() == {"error": "meetingId, phoneNumber, conferenceId are required"}
    assert complete.status_code == 501
    assert "joinPhone not implemented" in complete.json()["error"]


def test_get_transcript_requires_meeting_id() -> None:
    response = client.post("/getTranscript", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "meetingId is required"}


def test_get_transcript_without_bound_bot_returns_not_found() -> None:
    unknown = client.post("/getTranscript", json={"meetingId": "m1"})
    _store().upsert_by_meeting_id("m2", {"joinUrl": "https://teams.example/y"})
    unbound = client.post("/getTranscript", json={"meetingId": "m2"})

    assert unknown.status_code == 404
    assert unknown.json() == {"error": "No Recall bot mapped for this meetingId yet"}
    assert unbound.status_code == 404
    assert unbound.json() == {"error": "No Recall bot mapped for this meetingId yet"}


def test_get_transcript_not_ready_returns_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    _store().upsert_by_meeting_id("m1", {"recallBotId": "bot-1"})
    monkeypatch.setattr(
        RecallApiClient,
        "get_bot",
        lambda self, bot_id: {"id": bot_id, "recordings": []},
    )

    response = client.post("/getTranscript", json={"meetingId": "m1"})

    assert response.status_code == 404
    data = response.json()
    assert data["error"].startswith("Transcript not available yet.")
    assert data["recallBotId"] == "bot-1"


def test_get_transcript_normalizes_and_persists_transcript_id(monkeypatch: pytest.MonkeyPatch) -> None:
    _store().upsert_by_meeting_id("m1", {"recallBotId": "bot-1"})
    downloads: list[str] = []

    def fake_download(self: RecallApiClient, download_url: str) -> dict[str, Any]:
        downloads.append(download_url)
        return {"items": [{"speaker": "Alice", "text": "Hi"}, {"text": "there"}]}

    monkeypatch.setattr(
        RecallApiClient,
        "get_bot",
        lambda self, bot_id: _bot_with_transcript("https://s3.example/t.json?sig=1"),
    )
    monkeypatch.setattr(RecallApiClient, "download_transcript", fake_download)

    response = client.post("/getTranscript", json={"meetingId": "m1"})

    assert response.status_code == 200
    assert response.json() == {
        "meetingId": "m1",
        "transcriptText": "Alice: Hi\nthere",
        "quality": "poor",
        "recallBotId": "bot-1",
        "transcriptId": "tr-1",
    }
    assert downloads == ["https://s3.example/t.json?sig=1"]
    assert _store().find_by_meeting_id("m1")["transcriptId"] == "tr-1"


def test_get_transcript_falls_back_to_stored_transcript_id(monkeypatch: pytest.MonkeyPatch) -> None:
    _store().upsert_by_meeting_id("m1", {"recallBotId": "bot-1", "transcriptId": "tr-stored"})
    long_text = "This transcript is comfortably longer than forty characters."
    monkeypatch.setattr(
        RecallApiClient,
        "get_bot",
        lambda self, bot_id: _bot_with_transcript("https://s3.example/t.json", transcript_id=None),
    )
    monkeypatch.setattr(RecallApiClient, "download_transcript", lambda self, url: {"text": long_text})

    response = client.post("/getTranscript", json={"meetingId": "m1"})

    assert response.status_code == 200
    data = response.json()
    assert data["transcriptText"] == long_text
    assert data["quality"] == "ok"
    assert data["transcriptId"] == "tr-stored"


def test_get_transcript_surfaces_provider_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    _store().upsert_by_meeting_id("m1", {"recallBotId": "bot-1"})

    def failing_get_bot(self: RecallApiClient, bot_id: str) -> dict[str, Any]:
        raise RecallApiError("Recall API HTTP 404", status_code=404, details={"detail": "Not found."})

    monkeypatch.setattr(RecallApiClient, "get_bot", failing_get_bot)

    response = client.post("/getTranscript", json={"meetingId": "m1"})

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to retrieve transcript",
        "details": {"detail": "Not found."},
    }


def test_numeric_meeting_id_is_accepted_as_string(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(RecallApiClient, "create_bot", _fake_create_bot(calls))

    joined = client.post("/joinMeeting", json={"meetingId": 123, "joinUrl": "https://teams.example/x"})
    transcript = client.post("/getTranscript", json={"meetingId": 456})

    assert joined.status_code == 200
    assert joined.json()["meetingId"] == "123"
    assert calls[0]["metadata"]["meetingId"] == "123"
    assert _store().find_by_meeting_id("123")["recallBotId"] == "bot-1"
    assert transcript.status_code == 404
    assert transcript.json() == {"error": "No Recall bot mapped for this meetingId yet"}


def test_malformed_json_body_uses_error_shape() -> None:
    response = client.post(
        "/joinMeeting",
        content=b"{bad",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid request body."
    assert isinstance(data["details"], list)
    assert "detail" not in data


def test_invalid_field_type_uses_error_shape() -> None:
    response = client.post("/getTranscript", json={"meetingId": {"nested": "object"}})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid request body."
    assert data["details"][0]["loc"][-1] == "meetingId"
