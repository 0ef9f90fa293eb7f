import logging

from fastapi import APIRouter, Depends, status

from app.core.config import Settings, get_settings
from app.core.errors import ServiceError
from app.schemas.meeting import (
    JoinMeetingRequest,
    JoinMeetingResponse,
    JoinPhoneRequest,
    TranscriptRequest,
    TranscriptResponse,
)
from app.services.auth_service import require_shared_secret
from app.services.meeting_service import MeetingService
from app.services.meeting_store import MeetingStoreError

router = APIRouter(tags=["meetings"], dependencies=[Depends(require_shared_secret)])
logger = logging.getLogger(__name__)


def get_meeting_service(settings: Settings = Depends(get_settings)) -> MeetingService:
    try:
        return MeetingService(settings)
    except MeetingStoreError as exc:
        logger.exception("Meeting store unavailable")
        raise ServiceError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Meeting store unavailable",
            details=str(exc),
        ) from exc


@router.post("/joinMeeting", response_model=JoinMeetingResponse)
def join_meeting(
    payload: JoinMeetingRequest | None = None,
    service: MeetingService = Depends(get_meeting_service),
) -> JoinMeetingResponse:
    return service.join_meeting(payload or JoinMeetingRequest())


@router.post("/joinPhone")
def join_phone(payload: JoinPhoneRequest | None = None) -> None:
    MeetingService.join_phone(payload or JoinPhoneRequest())


@router.post("/getTranscript", response_model=TranscriptResponse)
def get_transcript(
    payload: TranscriptRequest | None = None,
    service: MeetingService = Depends(get_meeting_service),
) -> TranscriptResponse:
    return service.get_transcript(payload or TranscriptRequest())
