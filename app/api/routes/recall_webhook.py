import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request, status

from app.core.config import Settings, get_settings
from app.core.errors import ServiceError
from app.schemas.meeting import WebhookAckResponse
from app.services.meeting_service import MeetingService
from app.services.meeting_store import MeetingStoreError

router = APIRouter(prefix="/recall", tags=["recall"])
logger = logging.getLogger(__name__)


@router.post("/webhook", response_model=WebhookAckResponse)
async def receive_recall_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
) -> WebhookAckResponse:
    payload = await _load_payload(request)
    logger.info("Webhook received provider=recall path=%s", str(request.url.path))
    # Acknowledge first; the event is applied after the response is sent.
    background_tasks.add_task(_process_recall_event, get_settings(), payload)
    return WebhookAckResponse(ok=True)


def _process_recall_event(settings: Settings, payload: Any) -> None:
    try:
        service = MeetingService(settings)
    except MeetingStoreError:
        logger.exception("Recall webhook dropped, meeting store unavailable")
        return
    service.process_recall_event(payload)


async def _load_payload(request: Request) -> Any:
    raw_body = await request.body()
    try:
        return json.loads(raw_body or b"{}")
    except ValueError as exc:
        raise ServiceError(
            status.HTTP_400_BAD_REQUEST,
            "Request body must be valid JSON.",
        ) from exc
