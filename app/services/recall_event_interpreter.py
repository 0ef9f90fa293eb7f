from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from app.schemas.meeting import BotStatusNotification
from app.services.payload_paths import extract_first_text

EVENT_TYPE_PATHS = ("type", "event", "name", "data.type", "data.event")
BOT_ID_PATHS = ("bot_id", "botId", "bot.id", "data.bot_id")
MEETING_ID_PATHS = ("metadata.meetingId", "bot.metadata.meetingId")
TIMESTAMP_PATHS = (
    "data.timestamp",
    "data.occurred_at",
    "data.created_at",
    "data.updated_at",
    "timestamp",
    "occurred_at",
    "created_at",
    "updated_at",
)
STATUS_PATHS = (
    "data.code",
    "data.status",
    "data.bot_status",
    "data.bot.status",
    "code",
    "status",
    "bot_status",
    "bot.status",
)
TRANSCRIPT_ID_PATHS = ("transcript_id", "transcriptId", "transcript.id", "data.transcript_id")

JOINED_STATUS_MARKERS = ("in_call", "in_meeting", "in_waiting_room")
LEFT_STATUS_MARKERS = ("done", "left", "call_ended")


@dataclass(frozen=True)
class RecallWebhookEvent:
    event_type: str
    bot_id: str | None
    meeting_id: str | None
    timestamp: str
    status_value: str | None
    notification_status: BotStatusNotification | None
    transcript_id: str | None
    joined_matched: bool = False
    left_matched: bool = False


def interpret_recall_event(event: Any) -> RecallWebhookEvent:
    if not isinstance(event, Mapping):
        event = {}

    event_type = extract_first_text(event, EVENT_TYPE_PATHS) or "unknown"
    payload = _select_payload(event)
    status_value = extract_first_text(payload, STATUS_PATHS)
    joined_matched, left_matched = match_bot_status(event_type, status_value)

    return RecallWebhookEvent(
        event_type=event_type,
        bot_id=extract_first_text(payload, BOT_ID_PATHS),
        meeting_id=extract_first_text(payload, MEETING_ID_PATHS),
        timestamp=extract_first_text(payload, TIMESTAMP_PATHS) or _utc_now_iso(),
        status_value=status_value,
        notification_status=_resolve_notification_status(joined_matched, left_matched),
        transcript_id=extract_first_text(payload, TRANSCRIPT_ID_PATHS),
        joined_matched=joined_matched,
        left_matched=left_matched,
    )


def match_bot_status(event_type: str | None, status_value: str | None) -> tuple[bool, bool]:
    """Return ``(joined, left)`` substring matches for a bot status.

    The two checks are independent; a status can match both.
    """
    normalized_type = str(event_type or "").lower()
    normalized_status = str(status_value or "").lower()
    if not normalized_type:
        return False, False

    joined = any(marker in normalized_status for marker in JOINED_STATUS_MARKERS)
    left = any(marker in normalized_status for marker in LEFT_STATUS_MARKERS)
    return joined, left


def classify_bot_status(
    event_type: str | None,
    status_value: str | None,
) -> BotStatusNotification | None:
    joined, left = match_bot_status(event_type, status_value)
    return _resolve_notification_status(joined, left)


def _resolve_notification_status(joined: bool, left: bool) -> BotStatusNotification | None:
    if left:
        return BotStatusNotification.left
    if joined:
        return BotStatusNotification.joined
    return None


def _select_payload(event: Mapping[str, Any]) -> Mapping[str, Any]:
    for key in ("data", "payload"):
        candidate = event.get(key)
        if isinstance(candidate, Mapping):
            return candidate
    return event


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")
