import logging
from collections.abc import Mapping
from typing import Any

from fastapi import status

from app.core.config import Settings
from app.core.errors import ServiceError
from app.schemas.meeting import (
    JoinMeetingRequest,
    JoinMeetingResponse,
    JoinPhoneRequest,
    MeetingStatus,
    TranscriptRequest,
    TranscriptResponse,
)
from app.services.bot_status_notifier import BotStatusNotifier
from app.services.meeting_store import MeetingStore, MeetingStoreError, create_meeting_store
from app.services.payload_paths import extract_first_text, extract_path
from app.services.recall_api_client import RecallApiClient, RecallApiError
from app.services.recall_event_interpreter import interpret_recall_event
from app.services.transcript_normalizer import normalize_transcript_to_text, rate_transcript_quality

logger = logging.getLogger(__name__)

TRANSCRIPT_NOT_READY_MESSAGE = (
    "Transcript not available yet. The meeting may still be in progress "
    "or transcript processing is not complete."
)


class MeetingService:
    def __init__(
        self,
        settings: Settings,
        store: MeetingStore | None = None,
        recall_client: RecallApiClient | None = None,
        notifier: BotStatusNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.store = store or create_meeting_store(
            store_name=settings.meetings_store,
            mongodb_uri=settings.mongodb_uri,
            mongodb_db_name=settings.mongodb_db_name,
            mongodb_collection_name=settings.mongodb_meetings_collection,
            mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
        )
        self.recall_client = recall_client or RecallApiClient(
            api_url=settings.recall_base_url,
            api_key=settings.recall_api_key,
            timeout_seconds=settings.recall_api_timeout_seconds,
            user_agent=settings.recall_api_user_agent,
        )
        self.notifier = notifier or BotStatusNotifier(
            webhook_url=settings.n8n_bot_status_webhook_url,
            api_key=settings.n8n_webhook_api_key,
            timeout_seconds=settings.n8n_webhook_timeout_seconds,
        )

    def join_meeting(self, request: JoinMeetingRequest) -> JoinMeetingResponse:
        meeting_id = _clean(request.meeting_id)
        join_url = _clean(request.join_url)
        if not meeting_id or not join_url:
            raise ServiceError(status.HTTP_400_BAD_REQUEST, "meetingId and joinUrl are required")

        try:
            bot = self.recall_client.create_bot(self.build_bot_payload(request))
            recall_bot_id = extract_first_text(bot, ("id",))

            existing = self.store.find_by_meeting_id(meeting_id)
            descriptive_fields = {
                "subject": request.subject,
                "joinUrl": join_url,
                "startTime": request.start_time,
                "endTime": request.end_time,
            }
            updates: dict[str, Any] = {
                key: value for key, value in descriptive_fields.items() if value is not None
            }
            updates["status"] = MeetingStatus.join_requested.value
            existing_bot_id = existing.get("recallBotId") if existing else None
            if recall_bot_id and not existing_bot_id:
                updates["recallBotId"] = recall_bot_id
            elif recall_bot_id and existing_bot_id != recall_bot_id:
                logger.warning(
                    "Meeting already bound to another bot meeting_id=%s stored_bot_id=%s new_bot_id=%s",
                    meeting_id,
                    existing_bot_id,
                    recall_bot_id,
                )
            self.store.upsert_by_meeting_id(meeting_id, updates)
        except (RecallApiError, MeetingStoreError) as exc:
            logger.error("Bot creation failed meeting_id=%s error=%s", meeting_id, exc)
            raise ServiceError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to create Recall bot",
                details=_error_details(exc),
            ) from exc

        logger.info("Bot created meeting_id=%s recall_bot_id=%s", meeting_id, recall_bot_id)
        return JoinMeetingResponse(meeting_id=meeting_id, recall_bot_id=recall_bot_id)

    def build_bot_payload(self, request: JoinMeetingRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "meeting_url": _clean(request.join_url),
            # Echoed back by Recall in every webhook for this bot.
            "metadata": {
                "meetingId": _clean(request.meeting_id),
                "subject": request.subject or "",
                "startTime": request.start_time or "",
                "endTime": request.end_time or "",
            },
            "recording_config": {
                "transcript": {
                    "provider": {
                        "recallai_streaming": {
                            "mode": "prioritize_low_latency",
                            "language_code": self.settings.recall_transcript_language_code,
                        },
                    },
                },
            },
        }
        if self.settings.recall_bot_name:
            payload["bot_name"] = self.settings.recall_bot_name
        return payload

    @staticmethod
    def join_phone(request: JoinPhoneRequest) -> None:
        if not (
            _clean(request.meeting_id)
            and _clean(request.phone_number)
            and _clean(request.conference_id)
        ):
            raise ServiceError(
                status.HTTP_400_BAD_REQUEST,
                "meetingId, phoneNumber, conferenceId are required",
            )
        raise ServiceError(
            status.HTTP_501_NOT_IMPLEMENTED,
            "joinPhone not implemented. Use Teams joinUrl + Recall whenever possible.",
        )

    def process_recall_event(self, event: Any) -> None:
        """Apply a Recall webhook event after the delivery was acknowledged.

        Failures are logged and never raised: the provider already got its 200.
        """
        try:
            self._apply_recall_event(event)
        except Exception:
            logger.exception("Recall webhook processing failed")

    def _apply_recall_event(self, event: Any) -> None:
        interpreted = interpret_recall_event(event)
        logger.info(
            "Recall webhook interpreted event_type=%s meeting_id=%s recall_bot_id=%s status=%s",
            interpreted.event_type,
            interpreted.meeting_id,
            interpreted.bot_id,
            interpreted.status_value,
        )
        if not interpreted.meeting_id:
            logger.warning("Recall webhook has no meetingId in metadata; cannot map to n8n")
            return

        meeting_id = interpreted.meeting_id
        existing = self.store.find_by_meeting_id(meeting_id) or {}
        updates: dict[str, Any] = {}
        if interpreted.bot_id and not existing.get("recallBotId"):
            updates["recallBotId"] = interpreted.bot_id
        if interpreted.joined_matched:
            if not existing.get("joinTs"):
                updates["joinTs"] = interpreted.timestamp
            updates["status"] = MeetingStatus.in_meeting.value
        if interpreted.left_matched:
            if not existing.get("leaveTs"):
                updates["leaveTs"] = interpreted.timestamp
            updates["status"] = MeetingStatus.left.value
        if interpreted.transcript_id:
            updates["transcriptId"] = interpreted.transcript_id

        self.store.upsert_by_meeting_id(meeting_id, updates)

        if interpreted.notification_status is None:
            return
        if not self.notifier.enabled:
            logger.info(
                "Bot status forwarding skipped, no webhook configured meeting_id=%s status=%s",
                meeting_id,
                interpreted.notification_status.value,
            )
            return
        self.notifier.notify(
            meeting_id=meeting_id,
            status=interpreted.notification_status,
            timestamp=interpreted.timestamp,
        )

    def get_transcript(self, request: TranscriptRequest) -> TranscriptResponse:
        meeting_id = _clean(request.meeting_id)
        if not meeting_id:
            raise ServiceError(status.HTTP_400_BAD_REQUEST, "meetingId is required")

        try:
            return self._fetch_transcript(meeting_id)
        except (RecallApiError, MeetingStoreError) as exc:
            logger.error("Transcript retrieval failed meeting_id=%s error=%s", meeting_id, exc)
            raise ServiceError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to retrieve transcript",
                details=_error_details(exc),
            ) from exc

    def _fetch_transcript(self, meeting_id: str) -> TranscriptResponse:
        record = self.store.find_by_meeting_id(meeting_id)
        recall_bot_id = record.get("recallBotId") if record else None
        if not record or not recall_bot_id:
            raise ServiceError(
                status.HTTP_404_NOT_FOUND,
                "No Recall bot mapped for this meetingId yet",
            )

        bot = self.recall_client.get_bot(recall_bot_id)
        download_url, transcript_id = _locate_transcript(bot)
        stored_transcript_id = record.get("transcriptId")
        if not download_url:
            raise ServiceError(
                status.HTTP_404_NOT_FOUND,
                TRANSCRIPT_NOT_READY_MESSAGE,
                recallBotId=recall_bot_id,
            )
        transcript_id = transcript_id or stored_transcript_id

        transcript_data = self.recall_client.download_transcript(download_url)
        transcript_text = normalize_transcript_to_text(transcript_data)

        if transcript_id and transcript_id != stored_transcript_id:
            self.store.upsert_by_meeting_id(meeting_id, {"transcriptId": transcript_id})

        logger.info(
            "Transcript retrieved meeting_id=%s recall_bot_id=%s transcript_id=%s characters=%s",
            meeting_id,
            recall_bot_id,
            transcript_id,
            len(transcript_text),
        )
        return TranscriptResponse(
            meeting_id=meeting_id,
            transcript_text=transcript_text,
            quality=rate_transcript_quality(transcript_text),
            recall_bot_id=recall_bot_id,
            transcript_id=transcript_id or None,
        )


def _locate_transcript(bot: Mapping[str, Any]) -> tuple[str | None, str | None]:
    recordings = bot.get("recordings")
    if not isinstance(recordings, list) or not recordings:
        return None, None

    transcript = extract_path(recordings[0], "media_shortcuts.transcript")
    download_url = extract_first_text(transcript, ("data.download_url",))
    if not download_url:
        return None, None
    return download_url, extract_first_text(transcript, ("id",))


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _error_details(exc: Exception) -> Any:
    if isinstance(exc, RecallApiError):
        return exc.details
    return str(exc)
