import hmac
import logging

from fastapi import Depends, Header, status

from app.core.config import Settings, get_settings
from app.core.errors import ServiceError

logger = logging.getLogger(__name__)


def require_shared_secret(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected_secret = settings.shared_secret
    # Without a configured secret the authenticated routes stay open.
    if not expected_secret:
        return
    if x_api_key and hmac.compare_digest(x_api_key.encode("utf-8"), expected_secret.encode("utf-8")):
        return
    raise ServiceError(status.HTTP_401_UNAUTHORIZED, "Unauthorized")


def warn_if_shared_secret_missing(settings: Settings) -> None:
    if not settings.shared_secret:
        logger.warning("SHARED_SECRET is not set; joinMeeting, joinPhone and getTranscript accept any caller")
