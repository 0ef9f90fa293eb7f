from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MeetingStatus(StrEnum):
    join_requested = "join_requested"
    in_meeting = "in_meeting"
    left = "left"


class BotStatusNotification(StrEnum):
    joined = "joined"
    left = "left"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class JoinMeetingRequest(CamelModel):
    meeting_id: str | None = None
    join_url: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    subject: str | None = None


class JoinMeetingResponse(CamelModel):
    ok: bool = True
    meeting_id: str
    recall_bot_id: str | None = None


class JoinPhoneRequest(CamelModel):
    meeting_id: str | None = None
    phone_number: str | None = None
    conference_id: str | None = None


class TranscriptRequest(CamelModel):
    meeting_id: str | None = None


class TranscriptResponse(CamelModel):
    meeting_id: str
    transcript_text: str
    quality: str
    recall_bot_id: str
    transcript_id: str | None = None


class WebhookAckResponse(BaseModel):
    ok: bool = True
